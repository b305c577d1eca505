import os


class Settings:
    PROJECT_NAME: str = "studybuddy"
    DEBUG: bool = False
    LOG_DIR: str = "log"
    LOG_FILE: str = "studybuddy.log"
    LOG_TO_DB: bool = True
    DB_DIR: str = "db"
    DB_FILE: str = "studybuddy.db"
    REDIS_URL: str = os.getenv("STUDYBUDDY_REDIS_URL", "redis://localhost:6379/0")
    SESSION_COOKIE_NAME: str = "study_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120
    TUTOR_CHAT_URL: str = os.getenv("STUDYBUDDY_TUTOR_CHAT_URL", "")
    TUTOR_QUIZ_URL: str = os.getenv("STUDYBUDDY_TUTOR_QUIZ_URL", "")
    TUTOR_TIMEOUT_SECONDS: float = 30.0
    STRONG_THRESHOLD: int = 70
    PARTIAL_THRESHOLD: int = 40
    REPORT_WINDOW_DAYS: int = 7
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    DEFAULT_TOPIC: str = "General Study"


settings = Settings()
