from datetime import datetime, timedelta

from studybuddy.models import QuizAttemptRecord, QuizResult, StudySessionRecord
from studybuddy.report import build_report, weekly_report


def session(i, **kwargs):
    now = datetime.now() - timedelta(hours=i)
    return StudySessionRecord(
        id=f"sess-{i}", student_id="st-1", topic="Study", created_at=now, start_time=now, **kwargs
    )


def quiz(i, accuracy):
    return QuizAttemptRecord(
        id=f"quiz-{i}",
        student_id="st-1",
        created_at=datetime.now() - timedelta(hours=i),
        accuracy_percentage=accuracy,
        correct_count=0,
        total_questions=5,
    )


def test_empty_report():
    report = build_report("st-1", [], [])
    assert report.total_sessions == 0
    assert report.total_time_spent == 0
    assert report.avg_accuracy == 0
    assert report.total_quizzes == 0
    assert report.top_weak_areas == []
    assert report.subjects_studied == []
    assert report.understanding_distribution == {}
    assert report.overall_trend == "stable"
    assert report.ai_summaries == []


def test_totals_and_accuracy():
    sessions = [session(0, time_spent=20), session(1, time_spent=None), session(2, time_spent=15)]
    quizzes = [quiz(0, 80), quiz(1, 45), quiz(2, None)]
    report = build_report("st-1", sessions, quizzes)
    assert report.total_sessions == 3
    assert report.total_time_spent == 35
    assert report.total_quizzes == 3
    # (80 + 45 + 0) / 3 = 41.67
    assert report.avg_accuracy == 42


def test_average_accuracy_rounds_half_up():
    report = build_report("st-1", [], [quiz(0, 50), quiz(1, 51)])
    assert report.avg_accuracy == 51


def test_top_areas_by_frequency():
    sessions = [
        session(0, weak_areas=["fractions", "decimals"], strong_areas=["addition"]),
        session(1, weak_areas=["decimals"], strong_areas=None),
        session(2, weak_areas=["ratios", "decimals", "fractions"]),
        session(3, weak_areas=[]),
    ]
    report = build_report("st-1", sessions, [])
    assert [(a.area, a.count) for a in report.top_weak_areas] == [
        ("decimals", 3),
        ("fractions", 2),
        ("ratios", 1),
    ]
    assert [(a.area, a.count) for a in report.top_strong_areas] == [("addition", 1)]


def test_top_areas_are_capped_at_five():
    sessions = [session(0, weak_areas=[f"area-{i}" for i in range(8)])]
    assert len(build_report("st-1", sessions, []).top_weak_areas) == 5


def test_subjects_distribution_and_summaries():
    sessions = [
        session(0, subject="Physics", understanding_level="good", ai_summary="Great focus."),
        session(1, subject=None, understanding_level=None, ai_summary=None),
        session(2, subject="Physics", understanding_level="weak", ai_summary="Needs revision."),
        session(3, subject="Maths", understanding_level="good", ai_summary="Solid."),
        session(4, subject="", understanding_level="", ai_summary="Older note."),
    ]
    report = build_report("st-1", sessions, [])
    assert report.subjects_studied == ["Physics", "Maths"]
    assert report.understanding_distribution == {"good": 2, "average": 2, "weak": 1}
    assert report.ai_summaries == ["Great focus.", "Needs revision.", "Solid."]


def test_trend_up_down_and_stable():
    def trend(scores):
        sessions = [session(i, improvement_score=s) for i, s in enumerate(scores)]
        return build_report("st-1", sessions, []).overall_trend

    # newest first
    assert trend([90, 80, 50, 40]) == "up"
    assert trend([40, 50, 80, 90]) == "down"
    assert trend([62, 60, 60, 61]) == "stable"
    assert trend([90]) == "stable"
    assert trend([None, 90, None, 40]) == "up"


def test_weekly_report_uses_the_last_seven_days(store, redis_client):
    recent = store.create_session("st-1", "Physics", datetime.now())
    recent.time_spent = 30
    store.update_session(recent)

    old = store.create_session("st-1", "Chemistry", datetime.now())
    old.created_at = datetime.now() - timedelta(days=9)
    old.time_spent = 100
    store.update_session(old)
    redis_client.zadd("student:st-1:sessions", {old.id: old.created_at.timestamp()})

    store.add_quiz_attempt(
        "st-1",
        recent.id,
        QuizResult(
            correct_count=4, total_questions=5, accuracy=80, understanding="strong", questions=[], answers=[]
        ),
    )

    report = weekly_report(store, "st-1")
    assert [s.id for s in report.sessions] == [recent.id]
    assert report.total_time_spent == 30
    assert report.avg_accuracy == 80
