import os
from functools import lru_cache

from dotenv import load_dotenv

from app.models.settings import (
    LLMSettings, MatchingSettings, NotificationSettings,
    PipelineSettings, QueueSettings, SmtpSettings
)

load_dotenv()


def _env_bool(key: str, default: bool) -> bool:
    return os.getenv(key, str(default)).strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> PipelineSettings:
    """Build pipeline settings from environment variables (and .env)"""
    return PipelineSettings(
        mongo_details=os.getenv("MONGO_DETAILS", "mongodb://localhost:27017"),
        db_name=os.getenv("DB_NAME", "resume_pipeline_db"),
        llm_settings=LLMSettings(
            model_name=os.getenv("LLM_MODEL", "llama3.1:8b"),
            base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.2")),
            timeout=int(os.getenv("LLM_TIMEOUT", "120")),
            enabled=_env_bool("OPTIMIZER_USE_ORACLE", True),
        ),
        matching_settings=MatchingSettings(
            catalog_path=os.getenv("OPPORTUNITY_CATALOG_PATH") or None,
        ),
        notification_settings=NotificationSettings(
            sweep_interval_seconds=int(os.getenv("NOTIFICATION_SWEEP_INTERVAL_SECONDS", str(6 * 60 * 60))),
            sink=os.getenv("DELIVERY_SINK", "log").lower(),
        ),
        queue_settings=QueueSettings(
            use_celery=_env_bool("USE_CELERY", False),
            broker_url=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
        ),
        smtp_settings=SmtpSettings(
            server=os.getenv("SMTP_SERVER", "localhost"),
            port=int(os.getenv("SMTP_PORT", "587")),
            username=os.getenv("SMTP_USERNAME", ""),
            password=os.getenv("SMTP_PASSWORD", ""),
            from_email=os.getenv("SMTP_FROM_EMAIL", os.getenv("SMTP_USERNAME", "")),
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> PipelineSettings:
    return load_settings()
