import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("OPTIMIZER_USE_ORACLE", "false")
os.environ.setdefault("USE_CELERY", "false")

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from app.models.response import QueueStats
from app.models.schemas import (
    EducationEntry, ExperienceEntry, MatchRecord, ResumeDocument, StructuredProfile,
)


class FakeRepository:
    """In-memory stand-in for MongoPipelineRepository"""

    def __init__(self):
        self.resumes: Dict[str, ResumeDocument] = {}
        self.scores = {}
        self.matches: Dict[str, MatchRecord] = {}

    async def create_resume(self, resume):
        self.resumes[resume.resume_id] = resume
        return resume

    async def get_resume(self, resume_id):
        return self.resumes.get(resume_id)

    async def list_resumes(self, owner_id):
        owned = [r for r in self.resumes.values() if r.owner_id == owner_id]
        return sorted(owned, key=lambda r: r.uploaded_at, reverse=True)

    async def find_latest_resume(self, owner_id):
        owned = await self.list_resumes(owner_id)
        return owned[0] if owned else None

    async def upsert_score(self, record):
        self.scores[record.resume_id] = record
        return record

    async def get_score(self, resume_id):
        return self.scores.get(resume_id)

    async def create_match(self, match):
        self.matches[match.match_id] = match
        return match

    async def get_match(self, match_id):
        return self.matches.get(match_id)

    async def find_matches(self, owner_id, delivered=None):
        found = [
            m for m in self.matches.values()
            if m.owner_id == owner_id and (delivered is None or m.delivered == delivered)
        ]
        found.sort(key=lambda m: m.created_at, reverse=True)
        found.sort(key=lambda m: m.match_score, reverse=True)
        return found

    async def owners_with_pending_matches(self):
        return sorted({m.owner_id for m in self.matches.values() if not m.delivered})

    async def mark_match_delivered(self, match_id, delivered_at=None):
        m = self.matches.get(match_id)
        if m is None or m.delivered:
            return False
        self.matches[match_id] = m.copy(update={"delivered": True, "delivered_at": delivered_at or datetime.utcnow()})
        return True


class FakeQueue:
    """Records enqueued tasks without running them"""

    def __init__(self):
        self.tasks = []
        self.handlers = {}

    def register(self, name, handler):
        self.handlers[name] = handler

    async def enqueue(self, task):
        self.tasks.append(task)
        return task

    async def stats(self):
        return QueueStats(waiting=len(self.tasks))

    async def stop(self):
        pass


class FakeSink:
    name = "fake"

    def __init__(self, failures: int = 0):
        self.sent = []
        self.failures = failures

    def send(self, message):
        if self.failures > 0:
            self.failures -= 1
            from app.utils.exceptions import DeliveryError
            raise DeliveryError("sink down", sink=self.name, recipient=message.to)
        self.sent.append(message)


class FakeOracle:
    def __init__(self, content: Optional[str] = None, error: Exception = None):
        self.content = content
        self.error = error
        self.calls: List[list] = []

    def chat(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return {"content": self.content}


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def full_profile():
    return StructuredProfile(
        name="Jane Developer",
        email="jane@example.com",
        phone="+1 555-123-4567",
        skills=["Python", "React", "Docker", "AWS", "MongoDB"],
        experience=[
            ExperienceEntry(
                organization="Acme", title="Engineer",
                start_date=datetime(2019, 1, 1), end_date=datetime(2021, 12, 31),
                description="Built data pipelines for customer analytics",
            ),
            ExperienceEntry(
                organization="Globex", title="Senior Engineer",
                start_date=datetime(2022, 1, 1),
                description="Led the platform team",
            ),
        ],
        education=[EducationEntry(
            institution="State University", credential="BSc", field="Computer Science",
            completion_date=datetime(2018, 6, 1),
        )],
        summary="Backend engineer with seven years of experience building reliable data services.",
    )


def make_resume(owner_id: str, profile: StructuredProfile, **kwargs) -> ResumeDocument:
    return ResumeDocument(owner_id=owner_id, file_name=kwargs.pop("file_name", "resume.txt"), profile=profile, **kwargs)


def make_match(owner_id: str, score: int = 60, **kwargs) -> MatchRecord:
    return MatchRecord(
        owner_id=owner_id,
        title=kwargs.pop("title", "Frontend Engineer"),
        organization=kwargs.pop("organization", "StartupXYZ"),
        match_score=score,
        match_reasons=kwargs.pop("match_reasons", ["1 matching skills: React"]),
        **kwargs,
    )


async def no_sleep(seconds):
    await asyncio.sleep(0)
