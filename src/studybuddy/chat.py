import logging
import uuid
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel

from .analysis import merge_analysis
from .config import settings
from .errors import BackendError, NotFound, ValidationFailure
from .models import (
    REACTION_TYPES,
    AnswerRecord,
    ChatMessage,
    ChatState,
    MessageReaction,
    QuizQuestion,
    QuizResult,
    SessionAnalysis,
    StudySummary,
)
from .quiz import QuizEngine, result_message, round_half_up
from .store import Store
from .tutor import Tutor, TutorError

logger = logging.getLogger(__name__)

GREETING = "Hey! What are we studying today? Tell me which subject or chapter to start with! 📚"
EMPTY_REPLY = "Sorry, something went wrong on my side. Please try again!"
CONNECTION_REPLY = "Oops! I'm having trouble connecting. Try again in a little while! 🙏"

TOPIC_KEYWORDS = [
    "physics",
    "chemistry",
    "maths",
    "math",
    "biology",
    "history",
    "geography",
    "english",
    "hindi",
    "science",
    "social",
]


class ChatTurn(BaseModel):
    user_message: ChatMessage
    reply: ChatMessage
    analysis: SessionAnalysis
    warning: Optional[str] = None


def new_chat(student_id: Optional[str] = None) -> ChatState:
    now = datetime.now()
    return ChatState(
        student_id=student_id,
        created_at=now,
        messages=[
            ChatMessage(
                id=uuid.uuid4().hex, role="assistant", content=GREETING, timestamp=now
            )
        ],
    )


def detect_topic(text: str) -> Optional[str]:
    lowered = text.lower()
    for keyword in TOPIC_KEYWORDS:
        if keyword in lowered:
            return keyword.capitalize()
    return None


def data_url_size(url: str) -> int:
    """Decoded byte size of a base64 data URL; 0 for plain links."""
    header, sep, payload = url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        return 0
    payload = payload.strip()
    return len(payload) * 3 // 4 - (len(payload) - len(payload.rstrip("=")))


class StudyChat:
    """Applies user actions to a ChatState.

    The state is mutated in place; callers are responsible for saving it.
    Persistence problems are logged and never interrupt the conversation.
    """

    def __init__(self, state: ChatState, store: Optional[Store], tutor: Tutor):
        self.state = state
        self.store = store
        self.tutor = tutor

    @property
    def topic(self) -> str:
        return self.state.topic or settings.DEFAULT_TOPIC

    @property
    def in_quiz(self) -> bool:
        return self.state.quiz is not None and self.state.quiz.result is None

    @property
    def finished(self) -> bool:
        return self.state.summary is not None

    def _append(self, role: str, content: str, image_url: Optional[str] = None) -> ChatMessage:
        message = ChatMessage(
            id=uuid.uuid4().hex,
            role=role,
            content=content,
            timestamp=datetime.now(),
            image_url=image_url,
        )
        self.state.messages.append(message)
        return message

    def _ensure_record(self) -> Optional[str]:
        if self.state.record_id:
            return self.state.record_id
        if not self.state.student_id or self.store is None:
            return None
        try:
            record = self.store.create_session(
                self.state.student_id, self.topic, self.state.created_at
            )
        except BackendError as e:
            logger.error(f"Error creating session: {e}")
            return None
        self.state.record_id = record.id
        return record.id

    def _persist(self, message: ChatMessage, record_id: Optional[str]):
        if not record_id or self.store is None:
            return
        try:
            self.store.add_message(record_id, message)
        except BackendError as e:
            logger.error(f"Error saving message: {e}")

    # --- Conversation ---
    def send_message(self, content: str, image_url: Optional[str] = None) -> ChatTurn:
        if self.finished:
            raise ValidationFailure("Study session already ended")
        if self.in_quiz:
            raise ValidationFailure("Finish the quiz first")
        if not content.strip() and not image_url:
            raise ValidationFailure("Message is empty")
        if image_url and data_url_size(image_url) > settings.MAX_IMAGE_BYTES:
            raise ValidationFailure("Please upload an image smaller than 5MB")

        user_message = self._append("user", content, image_url)

        found = detect_topic(content)
        if found and not self.state.topic:
            self.state.topic = found

        record_id = self._ensure_record()
        self._persist(user_message, record_id)

        warning = None
        try:
            reply = self.tutor.reply(self.state.messages, self.state.student_id)
            self.state.analysis = merge_analysis(self.state.analysis, reply.analysis)
            text = reply.text or EMPTY_REPLY
            warning = reply.error
        except TutorError as e:
            logger.error(f"AI response error: {e}")
            text = CONNECTION_REPLY

        reply_message = self._append("assistant", text)
        self._persist(reply_message, record_id)

        return ChatTurn(
            user_message=user_message,
            reply=reply_message,
            analysis=self.state.analysis,
            warning=warning,
        )

    def toggle_reaction(self, message_id: str, reaction_type: str) -> Dict[str, MessageReaction]:
        if reaction_type not in REACTION_TYPES:
            raise ValidationFailure(f"Unknown reaction: {reaction_type}")
        if not any(m.id == message_id for m in self.state.messages):
            raise NotFound("Message not found")

        reactions = self.state.reactions.setdefault(
            message_id, {t: MessageReaction(type=t) for t in REACTION_TYPES}
        )
        reaction = reactions[reaction_type]
        reaction.user_reacted = not reaction.user_reacted
        if reaction.user_reacted:
            reaction.count += 1
        else:
            reaction.count = max(0, reaction.count - 1)
        return reactions

    # --- End of study & quiz ---
    def end_study(self) -> Optional[StudySummary]:
        """Starts quiz mode if a quiz can be generated, otherwise ends the session.

        Returns the summary when the session ended, None when a quiz started.
        """
        if self.finished:
            raise ValidationFailure("Study session already ended")
        if self.in_quiz:
            raise ValidationFailure("Quiz already in progress")

        try:
            questions = self.tutor.generate_quiz(
                self.state.messages, self.topic, self.state.analysis.current_understanding
            )
        except TutorError as e:
            logger.error(f"Quiz generation error: {e}")
            questions = []

        engine = QuizEngine.start(questions)
        if engine is None:
            return self.finish()

        self.state.quiz = engine.state
        self._append(
            "assistant",
            f"Alright! Let's see how much you understood. I'll ask you "
            f"{engine.total} questions about what we just covered. Get ready! 💪",
        )
        logger.info(f"Quiz started with {engine.total} questions [Topic: {self.topic}]")
        return None

    def _engine(self) -> QuizEngine:
        if not self.in_quiz:
            raise ValidationFailure("No quiz in progress")
        return QuizEngine(self.state.quiz)

    def current_question(self) -> Optional[QuizQuestion]:
        return self._engine().current_question

    def answer_quiz(self, answer: str) -> AnswerRecord:
        if not answer.strip():
            raise ValidationFailure("Answer is empty")
        return self._engine().submit_answer(answer)

    def next_question(self) -> Optional[QuizQuestion]:
        """Moves on; returns None once the quiz is scored and the session ended."""
        engine = self._engine()
        question = engine.next_question()
        if question is not None:
            return question

        result = self.state.quiz.result
        self._append("assistant", result_message(result))
        self.finish(result)
        return None

    def finish(self, quiz_result: Optional[QuizResult] = None) -> StudySummary:
        minutes = (datetime.now() - self.state.created_at).total_seconds() / 60
        summary = StudySummary(
            topic=self.topic,
            time_spent=max(round_half_up(minutes), 1),
            messages=self.state.messages,
            analysis=self.state.analysis,
            quiz_result=quiz_result,
        )
        self.state.summary = summary
        self._save_summary(summary)
        logger.info(
            f"Study session ended [Topic: {summary.topic}, Minutes: {summary.time_spent}, "
            f"Quiz: {quiz_result.understanding if quiz_result else 'none'}]"
        )
        return summary

    def _save_summary(self, summary: StudySummary):
        if self.store is None or not self.state.student_id:
            return
        try:
            if summary.quiz_result is not None:
                self.store.add_quiz_attempt(
                    self.state.student_id, self.state.record_id, summary.quiz_result
                )
            if self.state.record_id:
                record = self.store.get_session(self.state.record_id)
                if record is not None:
                    record.topic = summary.topic
                    record.subject = self.state.topic or None
                    record.time_spent = summary.time_spent
                    record.understanding_level = summary.analysis.current_understanding
                    record.weak_areas = summary.analysis.weak_areas
                    record.strong_areas = summary.analysis.strong_areas
                    self.store.update_session(record)
        except BackendError as e:
            logger.error(f"Error saving study summary: {e}")
