# models/response.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.models.schemas import MatchRecord, ResumeDocument, ScoreRecord


class QueueStats(BaseModel):
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0


class OptimizationResponse(BaseModel):
    resume: ResumeDocument
    score: ScoreRecord
    original_score: ScoreRecord
    strategy: str  # "oracle" or "fallback"
    fallback_reason: Optional[str] = None


class MatchRunResponse(BaseModel):
    owner_id: str
    matches: List[MatchRecord]
    count: int
    scheduled_notifications: int


class NotificationTriggerResponse(BaseModel):
    owner_id: str
    task_id: str
    queued_at: datetime = Field(default_factory=datetime.utcnow)
