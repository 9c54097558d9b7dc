"""
Pipeline facade used by the HTTP routers.

Wires extraction, scoring, optimization, matching and notification scheduling
over a single repository and task queue.
"""
from datetime import datetime
from typing import List

from app.helpers.parsing import decode_base64_document, read_document
from app.models.response import (
    MatchRunResponse, NotificationTriggerResponse, OptimizationResponse, QueueStats,
)
from app.models.schemas import JobPreferences, MatchRecord, ResumeDocument, ResumeUploadInput, ScoreRecord
from app.models.settings import PipelineSettings
from app.services.catalog import build_catalog
from app.services.db import db
from app.services.delivery import build_sink
from app.services.extractor import extract
from app.services.graph import build_optimization_graph
from app.services.matching import JobMatchingService
from app.services.notifications import DeliveryWorker, NotificationService
from app.services.optimizer import OptimizationService
from app.services.repository import MongoPipelineRepository
from app.services.scoring import ResumeScoringService
from app.services.task_queue import build_task_queue
from app.utils.exceptions import ExceptionContext, NotFoundError, ValidationError
from app.utils.config import get_settings
from app.utils.logging_config import PerformanceMonitor, get_logger
from app.utils.utils import OllamaOracle

logger = get_logger(__name__)


class PipelineService:

    def __init__(
        self,
        repository,
        scoring: ResumeScoringService,
        optimizer: OptimizationService,
        matcher: JobMatchingService,
        notifications: NotificationService,
        worker: DeliveryWorker,
    ):
        self.repository = repository
        self.scoring = scoring
        self.optimizer = optimizer
        self.matcher = matcher
        self.notifications = notifications
        self.worker = worker

    @property
    def queue(self):
        return self.notifications.queue

    # -------- Resumes --------
    async def upload_resume(self, owner_id: str, upload: ResumeUploadInput) -> ResumeDocument:
        """Decode, extract and persist a resume. Nothing is stored when the email is missing."""
        content = decode_base64_document(upload.base64_content)
        with PerformanceMonitor(f"extract {upload.filename}", logger):
            text = read_document(content, upload.filename)
            profile = extract(text)
        if not profile.email:
            raise ValidationError("Email is required in resume", field="email")

        resume = ResumeDocument(
            owner_id=owner_id,
            file_name=upload.filename,
            file_url=f"/uploads/resumes/{owner_id}/{upload.filename}",
            profile=profile,
        )
        with ExceptionContext("create_resume", logger, owner_id=owner_id):
            await self.repository.create_resume(resume)

        logger.info(
            f"Stored resume {resume.resume_id} with {len(profile.skills)} skills",
            extra={"owner_id": owner_id, "resume_id": resume.resume_id}
        )
        return resume

    async def get_resume(self, owner_id: str, resume_id: str) -> ResumeDocument:
        resume = await self.repository.get_resume(resume_id)
        if resume is None or resume.owner_id != owner_id:
            raise NotFoundError("Resume not found", resource="resume", resource_id=resume_id)
        return resume

    async def list_resumes(self, owner_id: str) -> List[ResumeDocument]:
        return await self.repository.list_resumes(owner_id)

    async def score_resume(self, owner_id: str, resume_id: str) -> ScoreRecord:
        resume = await self.get_resume(owner_id, resume_id)
        return await self.scoring.score_resume(resume)

    async def get_resume_score(self, owner_id: str, resume_id: str) -> ScoreRecord:
        resume = await self.get_resume(owner_id, resume_id)
        record, _ = await self.scoring.get_or_score(resume)
        return record

    async def optimize_resume(self, owner_id: str, resume_id: str) -> OptimizationResponse:
        return await self.optimizer.optimize_resume(owner_id, resume_id)

    # -------- Matches --------
    async def match_jobs(self, owner_id: str, preferences: JobPreferences) -> MatchRunResponse:
        matches = await self.matcher.match_jobs(owner_id, preferences)
        tasks = await self.notifications.schedule_multiple_notifications(
            owner_id, [m.match_id for m in matches]
        )
        return MatchRunResponse(
            owner_id=owner_id,
            matches=matches,
            count=len(matches),
            scheduled_notifications=len(tasks),
        )

    async def get_matches(self, owner_id: str) -> List[MatchRecord]:
        return await self.matcher.get_user_matches(owner_id)

    async def trigger_notification_check(self, owner_id: str) -> NotificationTriggerResponse:
        task = await self.notifications.trigger_notification_check(owner_id)
        return NotificationTriggerResponse(owner_id=owner_id, task_id=task.task_id, queued_at=datetime.utcnow())

    async def get_queue_stats(self) -> QueueStats:
        return await self.notifications.get_queue_stats()


def build_pipeline_service(settings: PipelineSettings, database, queue=None, sink=None, oracle=None) -> PipelineService:
    repository = MongoPipelineRepository(database)
    scoring = ResumeScoringService(repository)

    llm = settings.llm_settings
    if oracle is None and llm.enabled:
        oracle = OllamaOracle(llm)
    graph = build_optimization_graph(oracle, enabled=llm.enabled)

    queue = queue if queue is not None else build_task_queue(settings.queue_settings)
    sink = sink if sink is not None else build_sink(settings.notification_settings, settings.smtp_settings)

    return PipelineService(
        repository=repository,
        scoring=scoring,
        optimizer=OptimizationService(repository, scoring, graph),
        matcher=JobMatchingService(repository, build_catalog(settings.matching_settings), settings.matching_settings),
        notifications=NotificationService(repository, queue, settings.notification_settings),
        worker=DeliveryWorker(repository, sink, settings.notification_settings),
    )


jobs_service = build_pipeline_service(get_settings(), db)
