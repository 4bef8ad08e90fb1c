"""
Pydantic Settings — centralized configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ──────────────────────────────
    POSTGRES_USER: str = "maintenance_user"
    POSTGRES_PASSWORD: str = "maintenance_pass"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "maintenance_db"

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for app runtime (asyncpg)."""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ── Redis / Celery ────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── Google Gemini ────────────────────────
    GOOGLE_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    LLM_TEMPERATURE: float = 0.2
    LLM_MAX_TOKENS: int = 4096

    # ── LangSmith Tracing ────────────────────
    LANGSMITH_API_KEY: str = ""
    LANGSMITH_ENDPOINT: str = "https://api.smith.langchain.com"
    LANGSMITH_PROJECT: str = "plant-maintenance"
    LANGSMITH_TRACING: bool = False

    # ── LINE Messaging ───────────────────────
    LINE_CHANNEL_ACCESS_TOKEN: str = ""
    LINE_API_BASE_URL: str = "https://api.line.me/v2/bot"
    LINE_TIMEOUT_SECONDS: float = 10.0

    # ── Pipeline guardrails ──────────────────
    DIAGNOSIS_CONFIDENCE_GATE: int = 70
    MAX_AUTO_APPROVE_COST: float = 50000.0
    MIN_AUTO_APPROVE_CONFIDENCE: int = 85
    STAGE_TIMEOUT_SECONDS: float = 60.0

    # ── Business parameters (THB) ────────────
    DOWNTIME_COST_PER_HOUR: float = 50000.0
    LABOR_RATE_PER_HOUR: float = 200.0
    AVERAGE_MAINTENANCE_COST: float = 15000.0
    DEFAULT_REPAIR_HOURS: float = 4.0
    FALLBACK_WORK_ORDER_COST: float = 5000.0
    PRODUCTION_VALUE_PER_HOUR: float = 1000.0
    OFF_PEAK_START_HOUR: int = 22             # plant local time
    PLANT_TIMEZONE: str = "Asia/Bangkok"

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}


settings = Settings()
