"""
Pipeline Settings Models for Configuration Management
"""
from pydantic import BaseModel, Field, validator
from typing import Optional


class LLMSettings(BaseModel):
    """Text-generation oracle configuration"""
    model_name: str = Field(default="llama3.1:8b", description="LLM model name")
    base_url: str = Field(default="http://localhost:11434", description="Ollama base URL")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Generation temperature")
    timeout: int = Field(default=120, ge=1, le=600, description="Request timeout in seconds")
    retry_attempts: int = Field(default=2, ge=1, le=10, description="Attempts per oracle call")
    enabled: bool = Field(default=True, description="Use the oracle before falling back to local rewrites")


class MatchingSettings(BaseModel):
    """Matching floor and result size"""
    match_floor: int = Field(default=50, ge=0, le=100, description="Minimum score to persist a match")
    max_results: int = Field(default=10, ge=1, le=100, description="Matches kept per run")
    catalog_path: Optional[str] = Field(default=None, description="JSON file with opportunity listings")


class NotificationSettings(BaseModel):
    """Delivery delay window, retry policy and sweep cadence"""
    min_delay_seconds: int = Field(default=5 * 60, ge=0, description="Inclusive lower bound of the delivery delay")
    max_delay_seconds: int = Field(default=24 * 60 * 60, ge=1, description="Exclusive upper bound of the delivery delay")
    attempts: int = Field(default=3, ge=1, le=10, description="Delivery attempts per task")
    backoff_delay_seconds: float = Field(default=2.0, ge=0.0, description="Exponential backoff base")
    sweep_interval_seconds: int = Field(default=6 * 60 * 60, ge=1, description="Periodic sweep interval")
    batch_size: int = Field(default=5, ge=1, le=50, description="Matches shown in a batch notification")
    sink: str = Field(default="log", description="Delivery sink: 'log' or 'smtp'")

    @validator('max_delay_seconds')
    def validate_delay_window(cls, v, values):
        if 'min_delay_seconds' in values and v <= values['min_delay_seconds']:
            raise ValueError('max_delay_seconds must be greater than min_delay_seconds')
        return v

    @validator('sink')
    def validate_sink(cls, v):
        if v not in ("log", "smtp"):
            raise ValueError("sink must be 'log' or 'smtp'")
        return v


class QueueSettings(BaseModel):
    """Task queue backend"""
    use_celery: bool = Field(default=False, description="Dispatch delivery tasks through Celery")
    broker_url: str = Field(default="redis://localhost:6379/0", description="Celery broker URL")
    queue_name: str = Field(default="job-notifications", description="Celery queue for delivery tasks")


class SmtpSettings(BaseModel):
    """SMTP delivery sink configuration"""
    server: str = Field(default="localhost")
    port: int = Field(default=587, ge=1, le=65535)
    username: str = Field(default="")
    password: str = Field(default="")
    from_email: str = Field(default="")


class PipelineSettings(BaseModel):
    """Complete pipeline configuration"""
    mongo_details: str = Field(default="mongodb://localhost:27017", description="MongoDB connection string")
    db_name: str = Field(default="resume_pipeline_db", description="MongoDB database name")
    llm_settings: LLMSettings = Field(default_factory=LLMSettings)
    matching_settings: MatchingSettings = Field(default_factory=MatchingSettings)
    notification_settings: NotificationSettings = Field(default_factory=NotificationSettings)
    queue_settings: QueueSettings = Field(default_factory=QueueSettings)
    smtp_settings: SmtpSettings = Field(default_factory=SmtpSettings)
