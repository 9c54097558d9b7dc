import base64
import pytest
from unittest.mock import MagicMock

from app.models.schemas import JobPreferences, ResumeUploadInput
from app.models.settings import LLMSettings, PipelineSettings
from app.services.catalog import StaticOpportunityCatalog
from app.services.graph import build_optimization_graph
from app.services.jobs_service import PipelineService, build_pipeline_service
from app.services.matching import JobMatchingService
from app.services.notifications import DeliveryWorker, NotificationService
from app.services.optimizer import OptimizationService
from app.services.scoring import ResumeScoringService
from app.services.task_queue import InMemoryTaskQueue
from app.utils.exceptions import NotFoundError, ValidationError

RESUME = b"""Jane Developer
jane@example.com
555-123-4567

Skills
React, TypeScript, CSS, HTML, Git

Experience
2019 - Present

Education
Bachelor of Science, 2018
"""


def upload(content: bytes, filename: str = "resume.txt") -> ResumeUploadInput:
    return ResumeUploadInput(filename=filename, base64_content=base64.b64encode(content).decode())


@pytest.fixture
def pipeline(repository, fake_queue, sink):
    scoring = ResumeScoringService(repository)
    return PipelineService(
        repository=repository,
        scoring=scoring,
        optimizer=OptimizationService(repository, scoring, build_optimization_graph(None)),
        matcher=JobMatchingService(repository, StaticOpportunityCatalog()),
        notifications=NotificationService(repository, fake_queue),
        worker=DeliveryWorker(repository, sink),
    )


class TestPipelineService:
    """Test cases for the facade behind the HTTP routers"""

    @pytest.mark.asyncio
    async def test_upload_extracts_and_persists(self, pipeline, repository):
        resume = await pipeline.upload_resume("owner-1", upload(RESUME))

        assert repository.resumes[resume.resume_id] == resume
        assert resume.file_url == "/uploads/resumes/owner-1/resume.txt"
        assert resume.profile.email == "jane@example.com"
        assert set(resume.profile.skills) == {"React", "TypeScript", "CSS", "HTML", "Git"}

    @pytest.mark.asyncio
    async def test_upload_without_email_persists_nothing(self, pipeline, repository):
        with pytest.raises(ValidationError):
            await pipeline.upload_resume("owner-1", upload(b"Jane Developer\nSkills\nReact"))
        assert repository.resumes == {}

    @pytest.mark.asyncio
    async def test_get_resume_checks_owner(self, pipeline):
        resume = await pipeline.upload_resume("owner-1", upload(RESUME))

        assert (await pipeline.get_resume("owner-1", resume.resume_id)) == resume
        with pytest.raises(NotFoundError):
            await pipeline.get_resume("owner-2", resume.resume_id)
        with pytest.raises(NotFoundError):
            await pipeline.get_resume("owner-1", "missing")

    @pytest.mark.asyncio
    async def test_score_and_optimize(self, pipeline):
        resume = await pipeline.upload_resume("owner-1", upload(RESUME))

        stored = await pipeline.get_resume_score("owner-1", resume.resume_id)
        result = await pipeline.optimize_resume("owner-1", resume.resume_id)

        assert result.original_score == stored
        assert result.score.overall_score >= stored.overall_score
        assert len(await pipeline.list_resumes("owner-1")) == 2

    @pytest.mark.asyncio
    async def test_match_jobs_schedules_one_notification_per_match(self, pipeline, fake_queue):
        await pipeline.upload_resume("owner-1", upload(RESUME))

        result = await pipeline.match_jobs("owner-1", JobPreferences(skills=["React"], job_titles=["Frontend Engineer"]))

        assert result.count == len(result.matches) == result.scheduled_notifications
        assert [t.match_id for t in fake_queue.tasks] == [m.match_id for m in result.matches]
        assert result.matches[0].title == "Frontend Engineer"
        assert result.matches[0].match_score == 90

    @pytest.mark.asyncio
    async def test_trigger_and_stats(self, pipeline, fake_queue):
        response = await pipeline.trigger_notification_check("owner-1")
        assert response.task_id == fake_queue.tasks[0].task_id
        assert (await pipeline.get_queue_stats()).waiting == 1


class TestBuildPipelineService:

    def test_wiring_with_oracle_disabled(self):
        settings = PipelineSettings(llm_settings=LLMSettings(enabled=False))
        service = build_pipeline_service(settings, MagicMock())

        assert isinstance(service.queue, InMemoryTaskQueue)
        assert service.worker.repository is service.repository
        assert service.matcher.catalog.list_opportunities()
