import logging
from datetime import datetime, timedelta
from typing import List, Optional

import pandas as pd

from .config import settings
from .models import AreaCount, QuizAttemptRecord, StudySessionRecord, WeeklyReport
from .quiz import round_half_up
from .store import Store

logger = logging.getLogger(__name__)

SESSION_COLUMNS = list(StudySessionRecord.model_fields)
QUIZ_COLUMNS = list(QuizAttemptRecord.model_fields)
TREND_MARGIN = 5
TOP_AREAS = 5


def _top_areas(column: pd.Series) -> List[AreaCount]:
    """Most frequent areas first; ties keep first-seen order."""
    areas = column.dropna().explode().dropna().reset_index(drop=True)
    areas = areas[areas != ""]
    if areas.empty:
        return []
    counts = areas.groupby(areas.values, sort=False).size()
    counts = counts.sort_values(ascending=False, kind="stable").head(TOP_AREAS)
    return [AreaCount(area=str(area), count=int(count)) for area, count in counts.items()]


def _trend(scores: List[float]) -> str:
    """Compares the newer half of improvement scores with the older half.

    Scores are ordered newest first.
    """
    if len(scores) < 2:
        return "stable"
    half = len(scores) // 2
    newer, older = scores[:half], scores[half:]
    avg_newer = sum(newer) / len(newer)
    avg_older = sum(older) / len(older)
    if avg_newer > avg_older + TREND_MARGIN:
        return "up"
    if avg_newer < avg_older - TREND_MARGIN:
        return "down"
    return "stable"


def build_report(
    student_id: str,
    sessions: List[StudySessionRecord],
    quizzes: List[QuizAttemptRecord],
) -> WeeklyReport:
    """Aggregates sessions and quiz attempts, both ordered newest first."""
    session_df = pd.DataFrame([s.model_dump() for s in sessions], columns=SESSION_COLUMNS)
    quiz_df = pd.DataFrame([q.model_dump() for q in quizzes], columns=QUIZ_COLUMNS)

    time_spent = pd.to_numeric(session_df["time_spent"], errors="coerce").fillna(0)

    avg_accuracy = 0
    if not quiz_df.empty:
        accuracy = pd.to_numeric(quiz_df["accuracy_percentage"], errors="coerce").fillna(0)
        avg_accuracy = round_half_up(accuracy.mean())

    subjects = session_df["subject"].dropna()
    subjects = subjects[subjects != ""]

    levels = session_df["understanding_level"].fillna("average").replace("", "average")
    distribution = levels.groupby(levels.values, sort=False).size()

    scores = pd.to_numeric(session_df["improvement_score"], errors="coerce").dropna()

    summaries = session_df["ai_summary"].dropna()
    summaries = summaries[summaries != ""]

    return WeeklyReport(
        student_id=student_id,
        total_sessions=len(session_df),
        total_time_spent=int(time_spent.sum()),
        avg_accuracy=avg_accuracy,
        total_quizzes=len(quiz_df),
        top_weak_areas=_top_areas(session_df["weak_areas"]),
        top_strong_areas=_top_areas(session_df["strong_areas"]),
        subjects_studied=[str(s) for s in subjects.unique()],
        understanding_distribution={str(k): int(v) for k, v in distribution.items()},
        overall_trend=_trend([float(s) for s in scores]),
        ai_summaries=[str(s) for s in summaries.head(3)],
        sessions=sessions,
        quizzes=quizzes,
    )


def weekly_report(
    store: Store, student_id: str, now: Optional[datetime] = None
) -> WeeklyReport:
    since = (now or datetime.now()) - timedelta(days=settings.REPORT_WINDOW_DAYS)
    sessions = store.list_sessions(student_id, since=since)
    quizzes = store.list_quiz_attempts(student_id, since=since)
    logger.info(
        f"Report for {student_id}: {len(sessions)} sessions, {len(quizzes)} quizzes"
    )
    return build_report(student_id, sessions, quizzes)
