import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

BACKEND_DIR = Path(__file__).resolve().parent

load_dotenv(BACKEND_DIR.parent / ".env")
load_dotenv(BACKEND_DIR / ".env")

PLACEHOLDER_API_KEY = "your-api-key-here"


class Settings(BaseModel):
    anthropic_api_key: str | None = None
    model: str = "claude-sonnet-4-5"
    llm_timeout_sec: float = 10.0
    max_tokens: int = 512
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]

    @property
    def assistant_enabled(self) -> bool:
        return bool(self.anthropic_api_key) and self.anthropic_api_key != PLACEHOLDER_API_KEY

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("TASKPRO_CORS_ORIGINS", "http://localhost:5173")
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            model=os.getenv("TASKPRO_MODEL", "claude-sonnet-4-5"),
            llm_timeout_sec=float(os.getenv("TASKPRO_LLM_TIMEOUT_SEC", "10")),
            max_tokens=int(os.getenv("TASKPRO_MAX_TOKENS", "512")),
            log_level=os.getenv("TASKPRO_LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


settings = Settings.from_env()
