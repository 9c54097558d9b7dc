from typing import List

from fastapi import APIRouter

from app.models.response import OptimizationResponse
from app.models.schemas import ResumeDocument, ResumeUploadInput, ScoreRecord
from app.services import jobs_service as pipeline
from app.utils.logging_config import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/{owner_id}", response_model=ResumeDocument, status_code=201)
async def upload_resume(owner_id: str, upload: ResumeUploadInput):
    """Upload a base64-encoded PDF, DOCX or TXT resume and extract its profile"""
    return await pipeline.jobs_service.upload_resume(owner_id, upload)


@router.get("/{owner_id}", response_model=List[ResumeDocument])
async def list_resumes(owner_id: str):
    """Get all resumes of an owner, newest first"""
    return await pipeline.jobs_service.list_resumes(owner_id)


@router.get("/{owner_id}/{resume_id}", response_model=ResumeDocument)
async def get_resume(owner_id: str, resume_id: str):
    return await pipeline.jobs_service.get_resume(owner_id, resume_id)


@router.post("/{owner_id}/{resume_id}/score", response_model=ScoreRecord)
async def score_resume(owner_id: str, resume_id: str):
    """Recompute and store the score of a resume"""
    return await pipeline.jobs_service.score_resume(owner_id, resume_id)


@router.get("/{owner_id}/{resume_id}/score", response_model=ScoreRecord)
async def get_resume_score(owner_id: str, resume_id: str):
    """Stored score of a resume, computed on first request"""
    return await pipeline.jobs_service.get_resume_score(owner_id, resume_id)


@router.post("/{owner_id}/{resume_id}/optimize", response_model=OptimizationResponse, status_code=201)
async def optimize_resume(owner_id: str, resume_id: str):
    """Create an optimized copy of a resume and score it"""
    logger.info(f"Optimization requested for resume {resume_id}", extra={"owner_id": owner_id})
    return await pipeline.jobs_service.optimize_resume(owner_id, resume_id)
