from datetime import datetime, timedelta

import pytest
import redis

from studybuddy.errors import BackendError
from studybuddy.models import ChatMessage, School, Student
from studybuddy.store import Store


def age_session(store, redis_client, record, days):
    record.created_at = datetime.now() - timedelta(days=days)
    store.update_session(record)
    redis_client.zadd(
        f"student:{record.student_id}:sessions", {record.id: record.created_at.timestamp()}
    )


def test_sessions_are_listed_newest_first(store, redis_client):
    first = store.create_session("s1", "Physics", datetime.now())
    second = store.create_session("s1", "Chemistry", datetime.now())
    age_session(store, redis_client, first, 2)
    store.create_session("s2", "History", datetime.now())

    sessions = store.list_sessions("s1")
    assert [s.id for s in sessions] == [second.id, first.id]


def test_sessions_since_filters_old_records(store, redis_client):
    old = store.create_session("s1", "Physics", datetime.now())
    recent = store.create_session("s1", "Chemistry", datetime.now())
    age_session(store, redis_client, old, 10)

    since = datetime.now() - timedelta(days=7)
    assert [s.id for s in store.list_sessions("s1", since=since)] == [recent.id]


def test_messages_keep_insertion_order(store):
    record = store.create_session("s1", "Maths", datetime.now())
    for i, role in enumerate(["user", "assistant", "user"]):
        store.add_message(
            record.id,
            ChatMessage(id=str(i), role=role, content=f"m{i}", timestamp=datetime.now()),
        )
    assert [m.content for m in store.list_messages(record.id)] == ["m0", "m1", "m2"]
    assert store.list_messages("unknown") == []


def test_find_school_requires_exact_password(store):
    store.save_school(School(id="sch-1", school_id="DPS01", name="DPS", password_hash="secret"))
    assert store.find_school("DPS01", "secret").id == "sch-1"
    assert store.find_school("DPS01", "Secret") is None
    assert store.find_school("DPS01", "secret ") is None
    assert store.find_school("NOPE", "secret") is None


def test_student_round_trip(store):
    store.save_student(Student(id="st-1", name="Asha", school_id="sch-1"))
    student = store.get_student("st-1")
    assert student.name == "Asha"
    assert student.is_approved is False
    assert store.get_student("missing") is None


class BrokenRedis:
    def get(self, *args, **kwargs):
        raise redis.ConnectionError("down")


def test_redis_failures_become_backend_errors():
    store = Store(BrokenRedis())
    with pytest.raises(BackendError):
        store.get_student("st-1")
    with pytest.raises(BackendError):
        store.find_school("DPS01", "secret")
