from typing import List

from fastapi import APIRouter

from app.models.response import MatchRunResponse, NotificationTriggerResponse, QueueStats
from app.models.schemas import JobPreferences, MatchRecord
from app.services import jobs_service as pipeline

router = APIRouter()


# declared before /{owner_id} so "queue" is not taken for an owner id
@router.get("/queue/stats", response_model=QueueStats)
async def get_queue_stats():
    """Counts of waiting, active, completed, failed and delayed delivery tasks"""
    return await pipeline.jobs_service.get_queue_stats()


@router.post("/{owner_id}", response_model=MatchRunResponse, status_code=201)
async def match_jobs(owner_id: str, preferences: JobPreferences):
    """Match the opportunity catalog against preferences and schedule notifications"""
    return await pipeline.jobs_service.match_jobs(owner_id, preferences)


@router.get("/{owner_id}", response_model=List[MatchRecord])
async def get_matches(owner_id: str):
    return await pipeline.jobs_service.get_matches(owner_id)


@router.post("/{owner_id}/notify", response_model=NotificationTriggerResponse, status_code=202)
async def trigger_notification_check(owner_id: str):
    """Queue an immediate batch notification of the owner's pending matches"""
    return await pipeline.jobs_service.trigger_notification_check(owner_id)
