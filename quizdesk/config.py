from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Банк вопросов
    QUESTIONS_SOURCE: str = "questions.json"

    # Размеры квизов и таймер
    QUIZ_SIZE: int = Field(default=5, ge=1)
    TIMED_QUIZ_SIZE: int = Field(default=10, ge=1)
    TIMED_DURATION_SECONDS: int = Field(default=10 * 60, ge=1)
    TIMER_POLL_INTERVAL: float = Field(default=0.5, gt=0)

    # Токены и ссылки
    TOKEN_FILLER: str = "A"
    SHARE_BASE_URL: str = "http://localhost:8000/timed.html"

    # Хранилище записей об ошибках
    DB_URL: str = "sqlite+aiosqlite:///./var/quizdesk.db"
    RECORD_ATTEMPTS: bool = True

    # Состояние таймера
    TIMER_STORE: str = "file"
    TIMER_STATE_FILE: str = "var/timer_state.json"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Логи
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Прокси (если нужно)
    HTTP_PROXY_URL: str | None = None

    # HTTP клиенты
    HTTP_TIMEOUT_CONNECT: float = 3.0
    HTTP_TIMEOUT_READ: float = 15.0
    HTTP_TIMEOUT_WRITE: float = 15.0
    HTTP_TIMEOUT_TOTAL: float = 30.0
    HTTP_RETRY_ATTEMPTS: int = 2
    HTTP_RETRY_BACKOFF_INITIAL: float = 0.5
    HTTP_RETRY_BACKOFF_MAX: float = 8.0
    HTTP_RETRY_STATUS_CODES: tuple[int, ...] = (500, 502, 503, 504)

    ENVIRONMENT: str = Field(default="local")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("TOKEN_FILLER", mode="before")
    @classmethod
    def _check_filler(cls, v):
        value = str(v or "A").strip().upper()
        if len(value) != 1 or not ("A" <= value <= "Z"):
            raise ValueError("TOKEN_FILLER must be a single letter A-Z")
        return value

    @field_validator("TIMER_STORE", mode="before")
    @classmethod
    def _check_timer_store(cls, v):
        value = str(v or "file").strip().lower()
        if value not in {"memory", "file", "redis"}:
            raise ValueError(f"Unsupported TIMER_STORE: {value}")
        return value

    @property
    def timed_duration_ms(self) -> int:
        return self.TIMED_DURATION_SECONDS * 1000


settings = Settings()
