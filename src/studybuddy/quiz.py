import logging
import math
import string
from typing import List, Optional

from .config import settings
from .errors import ValidationFailure
from .models import AnswerRecord, QuizQuestion, QuizResult, QuizState, Verdict

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def accuracy_percent(correct_count: int, total: int) -> int:
    """Integer percentage of correct answers, halves rounded up."""
    if total <= 0:
        return 0
    return (200 * correct_count + total) // (2 * total)


def understanding_verdict(accuracy: int) -> Verdict:
    if accuracy >= settings.STRONG_THRESHOLD:
        return "strong"
    if accuracy >= settings.PARTIAL_THRESHOLD:
        return "partial"
    return "weak"


def _normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def _correct_option_index(question: QuizQuestion, options: List[str]) -> int:
    correct = _normalize(question.correct_answer)
    if correct in options:
        return options.index(correct)
    # Generators sometimes answer with the option letter instead of its text.
    if len(correct) == 1 and correct in string.ascii_lowercase:
        position = string.ascii_lowercase.index(correct)
        if position < len(options):
            return position
    return -1


def is_correct_answer(question: QuizQuestion, answer: str) -> bool:
    if _normalize(answer) == _normalize(question.correct_answer):
        return True
    if not question.options:
        return False

    options = [_normalize(option) for option in question.options]
    answer_index = options.index(_normalize(answer)) if _normalize(answer) in options else -1
    correct_index = _correct_option_index(question, options)
    return answer_index >= 0 and answer_index == correct_index


class QuizEngine:
    """Drives one quiz attempt over an explicit QuizState."""

    def __init__(self, state: QuizState):
        self.state = state

    @classmethod
    def start(cls, questions: List[QuizQuestion]) -> Optional["QuizEngine"]:
        if not questions:
            return None
        return cls(QuizState(questions=list(questions)))

    @property
    def total(self) -> int:
        return len(self.state.questions)

    @property
    def is_complete(self) -> bool:
        return self.state.result is not None

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.is_complete:
            return None
        return self.state.questions[self.state.current_index]

    @property
    def correct_count(self) -> int:
        return sum(
            1
            for question, answer in zip(self.state.questions, self.state.answers)
            if is_correct_answer(question, answer)
        )

    def submit_answer(self, answer: str) -> AnswerRecord:
        question = self.current_question
        if question is None:
            raise ValidationFailure("Quiz already finished")
        if self.state.current_index < len(self.state.answers):
            raise ValidationFailure("Already answered")

        self.state.answers.append(answer)
        is_correct = is_correct_answer(question, answer)
        logger.info(
            f"Q{self.state.current_index} ({question.type}): "
            f"'{answer}' -> {'CORRECT' if is_correct else 'INCORRECT'}"
        )
        return AnswerRecord(
            question_id=question.id,
            user_answer=answer,
            correct_answer=question.correct_answer,
            is_correct=is_correct,
            explanation=question.explanation,
        )

    def next_question(self) -> Optional[QuizQuestion]:
        """Advance to the next question; scores the attempt after the last one."""
        if self.is_complete:
            raise ValidationFailure("Quiz already finished")
        if self.state.current_index >= len(self.state.answers):
            raise ValidationFailure("Answer the current question first")

        if self.state.current_index < self.total - 1:
            self.state.current_index += 1
            return self.current_question

        self.state.result = self.compute_result()
        return None

    def compute_result(self) -> QuizResult:
        correct_count = self.correct_count
        accuracy = accuracy_percent(correct_count, self.total)
        return QuizResult(
            correct_count=correct_count,
            total_questions=self.total,
            accuracy=accuracy,
            understanding=understanding_verdict(accuracy),
            questions=self.state.questions,
            answers=list(self.state.answers),
        )


def result_message(result: QuizResult) -> str:
    score = f"{result.correct_count}/{result.total_questions} ({result.accuracy}%)"
    if result.understanding == "strong":
        return f"🎉 Brilliant! You got {score} right. This topic is a strong one for you. Keep it up!"
    if result.understanding == "partial":
        return (
            f"👍 Not bad! {score} correct. Some concepts are clear, "
            "but a bit more practice will help."
        )
    return f"⚠️ Only {score} correct. Let's revisit this topic, you'll do better next time! 💪"
