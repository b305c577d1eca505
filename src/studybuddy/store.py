import functools
import hmac
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Type, TypeVar

import redis
from pydantic import BaseModel

from .errors import BackendError
from .models import (
    ChatMessage,
    QuizAttemptRecord,
    QuizResult,
    School,
    StoredMessage,
    Student,
    StudySessionRecord,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _backend(operation: str):
    """Re-raises Redis failures of a store call as BackendError."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except redis.RedisError as e:
                logger.error(f"Store {operation} failed: {e}")
                raise BackendError(f"Failed to {operation}") from e

        return wrapper

    return decorator


# --- Persistence Adapter ---
class Store:
    """Document collections for sessions, messages, quiz attempts, students and schools.

    Each record is a JSON document under ``<collection>:<id>``. Per-student
    sorted sets (scored by ``created_at``) give newest-first listings, and
    each session's messages sit in a list in insertion order.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    # --- helpers ---
    def _get(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        raw = self.client.get(key)
        return model.model_validate_json(raw) if raw else None

    def _put(self, key: str, record: BaseModel):
        self.client.set(key, record.model_dump_json())

    def _list_indexed(
        self,
        index_key: str,
        prefix: str,
        model: Type[ModelT],
        since: Optional[datetime],
    ) -> List[ModelT]:
        min_score = since.timestamp() if since else "-inf"
        ids = self.client.zrevrangebyscore(index_key, "+inf", min_score)
        if not ids:
            return []
        raws = self.client.mget([f"{prefix}:{record_id}" for record_id in ids])
        return [model.model_validate_json(raw) for raw in raws if raw]

    # --- study sessions ---
    @_backend("create session")
    def create_session(
        self, student_id: str, topic: str, start_time: datetime
    ) -> StudySessionRecord:
        record = StudySessionRecord(
            id=str(uuid.uuid4()),
            student_id=student_id,
            topic=topic,
            created_at=datetime.now(),
            start_time=start_time,
        )
        self._put(f"session:{record.id}", record)
        self.client.zadd(
            f"student:{student_id}:sessions",
            {record.id: record.created_at.timestamp()},
        )
        return record

    @_backend("load session")
    def get_session(self, session_id: str) -> Optional[StudySessionRecord]:
        return self._get(f"session:{session_id}", StudySessionRecord)

    @_backend("update session")
    def update_session(self, record: StudySessionRecord):
        self._put(f"session:{record.id}", record)

    @_backend("list sessions")
    def list_sessions(
        self, student_id: str, since: Optional[datetime] = None
    ) -> List[StudySessionRecord]:
        return self._list_indexed(
            f"student:{student_id}:sessions", "session", StudySessionRecord, since
        )

    # --- chat messages ---
    @_backend("save message")
    def add_message(self, session_id: str, message: ChatMessage) -> StoredMessage:
        stored = StoredMessage(
            id=str(uuid.uuid4()),
            session_id=session_id,
            role=message.role,
            content=message.content,
            image_url=message.image_url,
            created_at=message.timestamp,
        )
        self.client.rpush(f"session:{session_id}:messages", stored.model_dump_json())
        return stored

    @_backend("list messages")
    def list_messages(self, session_id: str) -> List[StoredMessage]:
        raws = self.client.lrange(f"session:{session_id}:messages", 0, -1)
        return [StoredMessage.model_validate_json(raw) for raw in raws]

    # --- quiz attempts ---
    @_backend("save quiz attempt")
    def add_quiz_attempt(
        self, student_id: str, session_id: Optional[str], result: QuizResult
    ) -> QuizAttemptRecord:
        record = QuizAttemptRecord(
            id=str(uuid.uuid4()),
            student_id=student_id,
            session_id=session_id,
            created_at=datetime.now(),
            accuracy_percentage=result.accuracy,
            correct_count=result.correct_count,
            total_questions=result.total_questions,
            understanding_result=result.understanding,
            questions=result.questions,
            answers=result.answers,
        )
        self._put(f"quiz_attempt:{record.id}", record)
        self.client.zadd(
            f"student:{student_id}:quiz_attempts",
            {record.id: record.created_at.timestamp()},
        )
        return record

    @_backend("list quiz attempts")
    def list_quiz_attempts(
        self, student_id: str, since: Optional[datetime] = None
    ) -> List[QuizAttemptRecord]:
        return self._list_indexed(
            f"student:{student_id}:quiz_attempts", "quiz_attempt", QuizAttemptRecord, since
        )

    # --- students & schools ---
    @_backend("load student")
    def get_student(self, student_id: str) -> Optional[Student]:
        return self._get(f"student:{student_id}", Student)

    @_backend("save student")
    def save_student(self, student: Student):
        self._put(f"student:{student.id}", student)

    @_backend("save school")
    def save_school(self, school: School):
        self._put(f"school:{school.school_id}", school)

    @_backend("validate school")
    def find_school(self, school_id: str, password: str) -> Optional[School]:
        """Looks a school up by its login id and exact password match."""
        school = self._get(f"school:{school_id}", School)
        if school is None:
            return None
        if not hmac.compare_digest(school.password_hash.encode(), password.encode()):
            return None
        return school
