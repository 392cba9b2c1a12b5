import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read from the environment (and a local .env)."""

    database_url: Optional[str] = None
    database_name: str = "QuizMania"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    resend_api_key: Optional[str] = None
    email_from: str = "QuizMania <noreply@resend.dev>"
    frontend_url: str = "http://localhost:3000"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    bcrypt_rounds: int = 12
    quiz_item_types: List[str] = field(default_factory=lambda: ["Multiple Choice", "True or False"])
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            database_name=os.getenv("DATABASE_NAME", "QuizMania"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            resend_api_key=os.getenv("RESEND_API_KEY"),
            email_from=os.getenv("EMAIL_FROM", "QuizMania <noreply@resend.dev>"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
            cors_origins=_split(os.getenv("CORS_ORIGINS", "http://localhost:3000")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
            quiz_item_types=_split(os.getenv("QUIZ_ITEM_TYPES", "Multiple Choice,True or False")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=int(os.getenv("PORT", "8000")),
        )
