from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["user", "assistant"]
QuestionType = Literal["mcq", "true_false", "fill_blank", "short_answer"]
Understanding = Literal["weak", "average", "good", "excellent"]
Verdict = Literal["strong", "partial", "weak"]
ReactionType = Literal["like", "helpful", "confusing"]

UNDERSTANDING_LEVELS = ("weak", "average", "good", "excellent")
REACTION_TYPES = ("like", "helpful", "confusing")


# --- Chat ---
class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    timestamp: datetime
    image_url: Optional[str] = None


class MessageReaction(BaseModel):
    type: ReactionType
    count: int = 0
    user_reacted: bool = False


class SessionAnalysis(BaseModel):
    weak_areas: List[str] = Field(default_factory=list)
    strong_areas: List[str] = Field(default_factory=list)
    topics_covered: List[str] = Field(default_factory=list)
    current_understanding: Understanding = "average"


class AnalysisReport(BaseModel):
    """Per-turn analysis as reported by the tutor service."""

    model_config = ConfigDict(populate_by_name=True)

    weak_areas: List[str] = Field(default_factory=list, alias="weakAreas")
    strong_areas: List[str] = Field(default_factory=list, alias="strongAreas")
    topics: List[str] = Field(default_factory=list)
    understanding: Optional[str] = None

    @field_validator("weak_areas", "strong_areas", "topics", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


# --- Quiz ---
class QuizQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    type: QuestionType
    question: str
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: str = ""
    difficulty: str = ""
    topic: str = ""


class AnswerRecord(BaseModel):
    question_id: int
    user_answer: str
    correct_answer: str
    is_correct: bool
    explanation: str = ""


class QuizResult(BaseModel):
    correct_count: int
    total_questions: int
    accuracy: int
    understanding: Verdict
    questions: List[QuizQuestion]
    answers: List[str]


class QuizState(BaseModel):
    questions: List[QuizQuestion]
    current_index: int = 0
    answers: List[str] = Field(default_factory=list)
    result: Optional[QuizResult] = None


class StudySummary(BaseModel):
    topic: str
    time_spent: int
    messages: List[ChatMessage]
    analysis: SessionAnalysis
    quiz_result: Optional[QuizResult] = None


class ChatState(BaseModel):
    student_id: Optional[str] = None
    record_id: Optional[str] = None
    topic: str = ""
    messages: List[ChatMessage] = Field(default_factory=list)
    analysis: SessionAnalysis = Field(default_factory=SessionAnalysis)
    reactions: Dict[str, Dict[str, MessageReaction]] = Field(default_factory=dict)
    quiz: Optional[QuizState] = None
    summary: Optional[StudySummary] = None
    created_at: datetime


# --- Persistence records ---
class StudySessionRecord(BaseModel):
    id: str
    student_id: str
    topic: str
    subject: Optional[str] = None
    created_at: datetime
    start_time: datetime
    time_spent: Optional[int] = None
    understanding_level: Optional[str] = None
    improvement_score: Optional[float] = None
    weak_areas: Optional[List[str]] = None
    strong_areas: Optional[List[str]] = None
    ai_summary: Optional[str] = None


class StoredMessage(BaseModel):
    id: str
    session_id: str
    role: Role
    content: str
    image_url: Optional[str] = None
    created_at: datetime


class QuizAttemptRecord(BaseModel):
    id: str
    student_id: str
    session_id: Optional[str] = None
    created_at: datetime
    accuracy_percentage: Optional[int] = None
    correct_count: int
    total_questions: int
    understanding_result: Optional[str] = None
    questions: List[QuizQuestion] = Field(default_factory=list)
    answers: List[str] = Field(default_factory=list)


class School(BaseModel):
    id: str
    school_id: str
    name: str
    password_hash: str


class Student(BaseModel):
    id: str
    name: str
    school_id: Optional[str] = None
    student_class: Optional[str] = None
    photo_url: Optional[str] = None
    is_approved: bool = False
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


# --- Approval ---
class ApprovalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    school_id: Optional[str] = Field(default=None, alias="schoolId")
    school_password: Optional[str] = Field(default=None, alias="schoolPassword")
    student_id: Optional[str] = Field(default=None, alias="studentId")
    rejection_reason: Optional[str] = Field(default=None, alias="rejectionReason")


class ApprovalResponse(BaseModel):
    success: bool
    status: Optional[str] = None
    error: Optional[str] = None


# --- Reports ---
class AreaCount(BaseModel):
    area: str
    count: int


class WeeklyReport(BaseModel):
    student_id: str
    total_sessions: int
    total_time_spent: int
    avg_accuracy: int
    total_quizzes: int
    top_weak_areas: List[AreaCount]
    top_strong_areas: List[AreaCount]
    subjects_studied: List[str]
    understanding_distribution: Dict[str, int]
    overall_trend: Literal["up", "down", "stable"]
    ai_summaries: List[str]
    sessions: List[StudySessionRecord]
    quizzes: List[QuizAttemptRecord]
