import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from .config import Settings
from .models import AnalysisReport, ChatMessage, QuizQuestion

logger = logging.getLogger(__name__)


class TutorError(Exception):
    """The tutor service could not be reached or answered garbage."""


class TutorReply(BaseModel):
    text: Optional[str] = None
    analysis: Optional[AnalysisReport] = None
    error: Optional[str] = None


# --- Strategy Pattern: Tutor backends ---
class Tutor(ABC):
    """Abstract Base Class for the assistant that answers and writes quizzes."""

    @abstractmethod
    def reply(
        self, messages: List[ChatMessage], student_id: Optional[str]
    ) -> TutorReply:
        pass

    @abstractmethod
    def generate_quiz(
        self, messages: List[ChatMessage], topic: str, student_level: str
    ) -> List[QuizQuestion]:
        pass

    def close(self):
        pass


class HttpTutor(Tutor):
    """Talks to the hosted chat and quiz-generation functions over HTTP."""

    def __init__(
        self,
        chat_url: str,
        quiz_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.chat_url = chat_url
        self.quiz_url = quiz_url
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def close(self):
        self.client.close()

    def _post(self, url: str, payload: dict) -> dict:
        try:
            response = self.client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TutorError(str(e)) from e
        if not isinstance(data, dict):
            raise TutorError(f"Unexpected response from {url}")
        return data

    def reply(
        self, messages: List[ChatMessage], student_id: Optional[str]
    ) -> TutorReply:
        data = self._post(
            self.chat_url,
            {
                "messages": [
                    {"role": m.role, "content": m.content, "imageUrl": m.image_url}
                    for m in messages
                ],
                "studentId": student_id,
                "analyzeSession": True,
            },
        )

        analysis = None
        if data.get("sessionAnalysis"):
            try:
                analysis = AnalysisReport.model_validate(data["sessionAnalysis"])
            except ValidationError as e:
                logger.warning(f"Discarding malformed session analysis: {e}")

        return TutorReply(
            text=data.get("response") or None,
            analysis=analysis,
            error=data.get("error"),
        )

    def generate_quiz(
        self, messages: List[ChatMessage], topic: str, student_level: str
    ) -> List[QuizQuestion]:
        data = self._post(
            self.quiz_url,
            {
                "messages": [{"role": m.role, "content": m.content} for m in messages],
                "topic": topic,
                "studentLevel": student_level,
            },
        )
        if not data.get("success"):
            return []

        raw_questions = (data.get("quiz") or {}).get("questions") or []
        try:
            return [QuizQuestion.model_validate(q) for q in raw_questions]
        except ValidationError as e:
            raise TutorError(f"Malformed quiz: {e}") from e


class OfflineTutor(Tutor):
    """Used when no tutor service is configured: no analysis, no quizzes."""

    def reply(
        self, messages: List[ChatMessage], student_id: Optional[str]
    ) -> TutorReply:
        return TutorReply(error="Tutor service is not configured")

    def generate_quiz(
        self, messages: List[ChatMessage], topic: str, student_level: str
    ) -> List[QuizQuestion]:
        return []


class TutorFactory:
    """Factory to select the tutor backend from settings."""

    @staticmethod
    def create(settings: Settings) -> Tutor:
        if settings.TUTOR_CHAT_URL and settings.TUTOR_QUIZ_URL:
            return HttpTutor(
                settings.TUTOR_CHAT_URL,
                settings.TUTOR_QUIZ_URL,
                timeout=settings.TUTOR_TIMEOUT_SECONDS,
            )
        logger.warning("TUTOR_CHAT_URL/TUTOR_QUIZ_URL not set, using offline tutor")
        return OfflineTutor()
