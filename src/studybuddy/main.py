import logging
import os
import uuid
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

import redis
import uvicorn
from fastapi import Cookie, Depends, FastAPI, Form, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .approval import approve_or_reject
from .chat import StudyChat, new_chat
from .config import settings
from .database import init_db
from .errors import StudyBuddyError
from .log_handler import SQLiteHandler
from .models import ApprovalRequest, ApprovalResponse, ChatState, QuizQuestion
from .redis_session import delete_chat_state, get_redis, load_chat_state, save_chat_state
from .report import weekly_report
from .store import Store
from .tutor import Tutor, TutorFactory

# --- Logging Setup ---
logger = logging.getLogger("studybuddy")
logger.setLevel(logging.INFO)

if settings.LOG_TO_DB:
    logger.addHandler(SQLiteHandler())
else:
    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(file_handler)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    global _tutor
    if settings.LOG_TO_DB:
        init_db()
    yield
    if _tutor is not None:
        _tutor.close()
        _tutor = None


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

_tutor: Optional[Tutor] = None


# --- Error Handling ---
@app.exception_handler(StudyBuddyError)
async def studybuddy_error_handler(request: Request, exc: StudyBuddyError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(redis.RedisError)
async def redis_error_handler(request: Request, exc: redis.RedisError):
    logger.error(f"Redis error on {request.url.path}: {exc}")
    return JSONResponse({"error": "Backend error"}, status_code=500)


# --- Dependencies ---
def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME),
) -> Optional[str]:
    return session_id


def get_store(client: redis.Redis = Depends(get_redis)) -> Store:
    return Store(client)


def get_tutor() -> Tutor:
    global _tutor
    if _tutor is None:
        _tutor = TutorFactory.create(settings)
    return _tutor


def get_active_chat(
    session_id: Optional[str] = Depends(get_session_id),
    client: redis.Redis = Depends(get_redis),
) -> Optional[ChatState]:
    return load_chat_state(client, session_id)


def _question_payload(question: QuizQuestion, chat: ChatState) -> dict:
    """The current question without its answer or explanation."""
    return {
        "id": question.id,
        "type": question.type,
        "question": question.question,
        "options": question.options,
        "difficulty": question.difficulty,
        "topic": question.topic,
        "current_index": chat.quiz.current_index,
        "total_questions": len(chat.quiz.questions),
    }


def _ended_payload(chat: ChatState) -> dict:
    return {"status": "ended", "summary": chat.summary.model_dump(mode="json", exclude_none=True)}


SESSION_INVALID = {"error": "Session invalid"}


# --- Chat Routes ---
@app.post("/api/chat/start")
def start_chat(
    response: Response,
    student_id: Optional[str] = Form(None),
    client: redis.Redis = Depends(get_redis),
):
    new_id = str(uuid.uuid4())
    chat = new_chat(student_id)
    save_chat_state(client, new_id, chat)

    logger.info(f"New chat: {new_id} [Student: {student_id or 'anonymous'}]")
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=new_id,
        httponly=True,
        samesite="Lax",
    )
    return {"session_id": new_id, "messages": chat.messages, "analysis": chat.analysis}


@app.get("/api/chat")
def get_chat(chat: Optional[ChatState] = Depends(get_active_chat)):
    if not chat:
        return JSONResponse(SESSION_INVALID, status_code=401)

    quiz_mode = chat.quiz is not None and chat.quiz.result is None
    return {
        "topic": chat.topic,
        "messages": chat.messages,
        "analysis": chat.analysis,
        "reactions": chat.reactions,
        "quiz_mode": quiz_mode,
        "current_index": chat.quiz.current_index if quiz_mode else None,
        "total_questions": len(chat.quiz.questions) if quiz_mode else None,
        "ended": chat.summary is not None,
    }


@app.post("/api/chat/message")
def send_message(
    content: str = Form(""),
    image_url: Optional[str] = Form(None),
    session_id: Optional[str] = Depends(get_session_id),
    chat: Optional[ChatState] = Depends(get_active_chat),
    client: redis.Redis = Depends(get_redis),
    store: Store = Depends(get_store),
    tutor: Tutor = Depends(get_tutor),
):
    if not chat:
        return JSONResponse(SESSION_INVALID, status_code=401)

    turn = StudyChat(chat, store, tutor).send_message(content, image_url)
    save_chat_state(client, session_id, chat)
    return turn


@app.post("/api/chat/messages/{message_id}/reactions/{reaction_type}")
def toggle_reaction(
    message_id: str,
    reaction_type: str,
    session_id: Optional[str] = Depends(get_session_id),
    chat: Optional[ChatState] = Depends(get_active_chat),
    client: redis.Redis = Depends(get_redis),
    tutor: Tutor = Depends(get_tutor),
):
    if not chat:
        return JSONResponse(SESSION_INVALID, status_code=401)

    reactions = StudyChat(chat, None, tutor).toggle_reaction(message_id, reaction_type)
    save_chat_state(client, session_id, chat)
    return reactions


@app.post("/api/chat/end")
def end_study(
    session_id: Optional[str] = Depends(get_session_id),
    chat: Optional[ChatState] = Depends(get_active_chat),
    client: redis.Redis = Depends(get_redis),
    store: Store = Depends(get_store),
    tutor: Tutor = Depends(get_tutor),
):
    if not chat:
        return JSONResponse(SESSION_INVALID, status_code=401)

    study_chat = StudyChat(chat, store, tutor)
    summary = study_chat.end_study()
    save_chat_state(client, session_id, chat)

    if summary is not None:
        return _ended_payload(chat)
    return {
        "status": "quiz",
        "message": chat.messages[-1],
        "question": _question_payload(study_chat.current_question(), chat),
    }


# --- Quiz Routes ---
@app.get("/api/quiz/current")
def get_current_question(
    chat: Optional[ChatState] = Depends(get_active_chat),
    tutor: Tutor = Depends(get_tutor),
):
    if not chat:
        return JSONResponse(SESSION_INVALID, status_code=401)

    question = StudyChat(chat, None, tutor).current_question()
    return _question_payload(question, chat)


@app.post("/api/quiz/answer")
def submit_answer(
    answer: str = Form(""),
    session_id: Optional[str] = Depends(get_session_id),
    chat: Optional[ChatState] = Depends(get_active_chat),
    client: redis.Redis = Depends(get_redis),
    tutor: Tutor = Depends(get_tutor),
):
    if not chat:
        return JSONResponse(SESSION_INVALID, status_code=401)

    record = StudyChat(chat, None, tutor).answer_quiz(answer)
    save_chat_state(client, session_id, chat)
    return record


@app.post("/api/quiz/next")
def next_question(
    session_id: Optional[str] = Depends(get_session_id),
    chat: Optional[ChatState] = Depends(get_active_chat),
    client: redis.Redis = Depends(get_redis),
    store: Store = Depends(get_store),
    tutor: Tutor = Depends(get_tutor),
):
    if not chat:
        return JSONResponse(SESSION_INVALID, status_code=401)

    question = StudyChat(chat, store, tutor).next_question()
    save_chat_state(client, session_id, chat)

    if question is None:
        return _ended_payload(chat)
    return {"status": "quiz", "question": _question_payload(question, chat)}


@app.post("/api/reset")
def reset_session(
    response: Response,
    session_id: Optional[str] = Depends(get_session_id),
    client: redis.Redis = Depends(get_redis),
):
    if session_id:
        delete_chat_state(client, session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "success"}


# --- History & Report Routes ---
@app.get("/api/students/{student_id}/sessions")
def list_student_sessions(student_id: str, store: Store = Depends(get_store)):
    return store.list_sessions(student_id)


@app.get("/api/sessions/{session_id}/messages")
def list_session_messages(session_id: str, store: Store = Depends(get_store)):
    return store.list_messages(session_id)


@app.get("/api/students/{student_id}/report")
def get_student_report(student_id: str, store: Store = Depends(get_store)):
    return weekly_report(store, student_id)


# --- School Approval ---
@app.post("/api/school-student-approval", response_model=ApprovalResponse)
async def school_student_approval(request: Request, store: Store = Depends(get_store)):
    try:
        body = ApprovalRequest.model_validate(await request.json())
        status = await run_in_threadpool(approve_or_reject, store, body)
    except StudyBuddyError as e:
        return JSONResponse(
            {"success": False, "error": e.message}, status_code=e.status_code
        )
    except ValueError:
        return JSONResponse(
            {"success": False, "error": "Invalid request body"}, status_code=400
        )
    except Exception as e:
        logger.exception("school-student-approval error")
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)

    return JSONResponse({"success": True, "status": status}, status_code=200)


if __name__ == "__main__":
    uvicorn.run("studybuddy.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
