"""
Resume scoring: structural and content sub-scores, overall score and
improvement suggestions.
"""
import math
import re
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from app.models.schemas import ResumeDocument, ScoreRecord, StructuredProfile
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

STRICT_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_SKILLS = 5
MIN_SUMMARY_LENGTH = 50
MIN_DESCRIPTION_LENGTH = 20
SUBSCORE_THRESHOLD = 70
MAX_SUGGESTIONS = 5


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (round() is banker's)."""
    return int(math.floor(value + 0.5))


def is_valid_email(email: str) -> bool:
    return bool(email) and bool(STRICT_EMAIL_RE.match(email))


def structural_score(profile: StructuredProfile) -> int:
    """Presence of the sections an applicant tracking system looks for."""
    score = 0
    if profile.email:
        score += 20
    if profile.phone:
        score += 10
    if profile.skills:
        score += 15
        if len(profile.skills) >= 5:
            score += 10
    if profile.experience:
        score += 15
        if len(profile.experience) >= 2:
            score += 10
    if profile.education:
        # presence bonus applies to any non-empty section
        score += 15 + 5
    return min(100, score)


def content_score(profile: StructuredProfile) -> int:
    """Depth of the content inside the sections."""
    score = 0
    if profile.name and len(profile.name.strip()) > 3:
        score += 10
    if is_valid_email(profile.email):
        score += 10

    if profile.skills:
        score += 10
        if len(profile.skills) >= 5:
            score += 10
        if len(profile.skills) >= 10:
            score += 5

    if profile.experience:
        score += 15
        if any(e.organization and e.title and e.start_date and e.description for e in profile.experience):
            score += 10
        if len(profile.experience) >= 3:
            score += 5

    if profile.education:
        score += 10
        if any(e.institution and e.credential and e.field and e.completion_date for e in profile.education):
            score += 5

    if profile.summary and len(profile.summary) > MIN_SUMMARY_LENGTH:
        score += 10
    return min(100, score)


def _experience_suggestion(p: StructuredProfile) -> Optional[str]:
    if not p.experience:
        return "Include work experience to strengthen your resume"
    if len(p.experience) < 2:
        return "Add more work experience entries if available (2-3 is ideal)"
    return None


# (condition, message) rules in declaration order; a rule may also return its
# own message (experience has two wordings)
SuggestionRule = Callable[[StructuredProfile, int, int], Optional[str]]

SUGGESTION_RULES: List[SuggestionRule] = [
    lambda p, s, c: None if p.email else "Add a valid email address to improve ATS compatibility",
    lambda p, s, c: None if p.phone else "Include a phone number for better contact information",
    lambda p, s, c: (
        "Add more relevant technical skills (aim for at least 5-10 skills)"
        if len(p.skills) < MIN_SKILLS else None
    ),
    lambda p, s, c: _experience_suggestion(p),
    lambda p, s, c: None if p.education else "Add your educational background",
    lambda p, s, c: (
        "Add a professional summary or objective statement (50-150 words)"
        if not p.summary or len(p.summary) < MIN_SUMMARY_LENGTH else None
    ),
    lambda p, s, c: (
        "Add detailed descriptions to your work experience entries"
        if any(len(e.description or "") < MIN_DESCRIPTION_LENGTH for e in p.experience) else None
    ),
    lambda p, s, c: (
        "Improve ATS compatibility by ensuring all standard sections are present"
        if s < SUBSCORE_THRESHOLD else None
    ),
    lambda p, s, c: (
        "Enhance content quality by providing more detailed information in each section"
        if c < SUBSCORE_THRESHOLD else None
    ),
]


def generate_suggestions(profile: StructuredProfile, structural: int, content: int) -> List[str]:
    suggestions = []
    for rule in SUGGESTION_RULES:
        message = rule(profile, structural, content)
        if message:
            suggestions.append(message)
    return suggestions[:MAX_SUGGESTIONS]


def score(profile: StructuredProfile, resume_id: Optional[str] = None) -> ScoreRecord:
    structural = structural_score(profile)
    content = content_score(profile)
    return ScoreRecord(
        resume_id=resume_id,
        overall_score=round_half_up((structural + content) / 2),
        structural_score=structural,
        content_score=content,
        suggestions=generate_suggestions(profile, structural, content),
        computed_at=datetime.utcnow(),
    )


class ResumeScoringService:
    """Scores resumes and keeps one ScoreRecord per resume."""

    def __init__(self, repository):
        self.repository = repository

    async def score_resume(self, resume: ResumeDocument) -> ScoreRecord:
        record = score(resume.profile, resume_id=resume.resume_id)
        await self.repository.upsert_score(record)
        logger.info(
            f"Scored resume {resume.resume_id}: overall={record.overall_score} "
            f"structural={record.structural_score} content={record.content_score}",
            extra={"resume_id": resume.resume_id, "owner_id": resume.owner_id}
        )
        return record

    async def get_score(self, resume_id: str) -> Optional[ScoreRecord]:
        return await self.repository.get_score(resume_id)

    async def get_or_score(self, resume: ResumeDocument) -> Tuple[ScoreRecord, bool]:
        """Return (record, computed) where computed is True when no stored record existed."""
        existing = await self.get_score(resume.resume_id)
        if existing is not None:
            return existing, False
        return await self.score_resume(resume), True
