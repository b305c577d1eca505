import tempfile

import fakeredis
import pytest
from fastapi.testclient import TestClient

from studybuddy.config import settings

# Keep the SQLite log table out of the working tree.
settings.DB_DIR = tempfile.mkdtemp(prefix="studybuddy-test-")

from studybuddy.main import app, get_tutor  # noqa: E402
from studybuddy.models import QuizQuestion  # noqa: E402
from studybuddy.redis_session import get_redis  # noqa: E402
from studybuddy.store import Store  # noqa: E402
from studybuddy.tutor import Tutor, TutorReply  # noqa: E402


class ScriptedTutor(Tutor):
    """Replays queued replies and a fixed quiz."""

    def __init__(self):
        self.replies = []
        self.questions = []
        self.quiz_error = None
        self.reply_calls = []
        self.quiz_calls = []

    def reply(self, messages, student_id):
        self.reply_calls.append((list(messages), student_id))
        if self.replies:
            item = self.replies.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return TutorReply(text="Sure, let's work through it.")

    def generate_quiz(self, messages, topic, student_level):
        self.quiz_calls.append((list(messages), topic, student_level))
        if self.quiz_error:
            raise self.quiz_error
        return list(self.questions)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def store(redis_client):
    return Store(redis_client)


@pytest.fixture
def tutor():
    return ScriptedTutor()


@pytest.fixture
def client(redis_client, tutor):
    app.dependency_overrides[get_redis] = lambda: redis_client
    app.dependency_overrides[get_tutor] = lambda: tutor
    with TestClient(app) as tc:
        yield tc
    app.dependency_overrides.clear()


@pytest.fixture
def make_question():
    def _make(question_id, correct_answer, options=None, question_type="mcq"):
        return QuizQuestion(
            id=question_id,
            type=question_type,
            question=f"Question {question_id}?",
            options=options,
            correct_answer=correct_answer,
            explanation=f"Because {correct_answer}.",
            difficulty="easy",
            topic="Physics",
        )

    return _make


@pytest.fixture
def five_questions(make_question):
    return [
        make_question(1, "Newton", ["Newton", "Joule", "Watt", "Pascal"]),
        make_question(2, "True", ["True", "False"], "true_false"),
        make_question(3, "gravity", question_type="fill_blank"),
        make_question(4, "B", ["9.8 m/s²", "3 x 10^8 m/s", "1 m/s", "0"]),
        make_question(5, "Energy is conserved", question_type="short_answer"),
    ]
