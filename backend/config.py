"""Application configuration from environment variables."""
from pathlib import Path

from pydantic_settings import BaseSettings

BACKEND_DIR = Path(__file__).resolve().parent
ENV_PATH = BACKEND_DIR / ".env"


class Settings(BaseSettings):
    openai_api_key: str = ""
    openai_interview_model: str = "gpt-4o-mini"
    openai_analysis_model: str = "gpt-4o"
    interview_max_turns: int = 5

    form_fetch_timeout: float = 15.0
    form_fetch_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )

    data_dir: Path = BACKEND_DIR / "data"
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    class Config:
        env_file = str(ENV_PATH)
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def api_key(self) -> str:
        return self.openai_api_key.strip().strip('"').strip("'")


settings = Settings()
