from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuração da aplicação, lida de variáveis de ambiente / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # --- Banco ---
    DATABASE_URL: str = "sqlite:///./tenx_cards.db"

    # local | integration | production
    ENV_NAME: str = "local"

    # --- Provedor LLM (Groq) ---
    GROQ_API_KEY: Optional[str] = None
    GROQ_API_BASE: str = "https://api.groq.com/openai/v1"
    DEFAULT_MODEL: str = "llama-3.3-70b-versatile"

    GENERATION_TIMEOUT: float = Field(default=60.0, gt=0)
    GENERATION_MAX_RETRIES: int = Field(default=2, ge=0)
    GENERATION_RETRY_DELAY: float = Field(default=1.0, ge=0)

    # --- Auth ---
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ACCESS_TOKEN_TTL: int = Field(default=3600, gt=0)
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Overrides explícitos das flags por ambiente
    FEATURE_AUTH: Optional[bool] = None
    FEATURE_AI_GENERATION: Optional[bool] = None


@lru_cache
def get_settings() -> Settings:
    return Settings()
