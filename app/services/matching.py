from typing import List, NamedTuple, Optional

from app.models.schemas import JobPreferences, MatchRecord, Opportunity, StructuredProfile
from app.models.settings import MatchingSettings
from app.services.scoring import round_half_up
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

SKILL_WEIGHT = 50
TITLE_MATCH = 25
TITLE_MISMATCH = 7.5
TITLE_NO_PREFERENCE = 12.5
LOCATION_MATCH = 15
LOCATION_NO_PREFERENCE = 10
LEVEL_MATCH = 10
LEVEL_OTHER = 5
MAX_REASON_SKILLS = 3


class ScoredOpportunity(NamedTuple):
    opportunity: Opportunity
    match_score: int
    match_reasons: List[str]


def _either_contains(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a in b or b in a


def _any_either_contains(value: str, candidates: List[str]) -> bool:
    return bool(value) and any(c and _either_contains(value, c) for c in candidates)


def matched_skills(required: List[str], user_skills: List[str]) -> List[str]:
    return [skill for skill in required if _any_either_contains(skill, user_skills)]


def skill_match(required: List[str], user_skills: List[str]) -> float:
    if not required:
        return 1.0
    return len(matched_skills(required, user_skills)) / len(required)


def title_matches(title: str, preferred: List[str]) -> bool:
    return _any_either_contains(title, preferred)


def title_affinity(title: str, preferred: List[str]) -> float:
    if not preferred:
        return TITLE_NO_PREFERENCE
    return TITLE_MATCH if title_matches(title, preferred) else TITLE_MISMATCH


def location_matches(location: str, preferred: Optional[List[str]]) -> bool:
    return bool(preferred) and _any_either_contains(location, preferred)


def location_score(location: str, preferred: Optional[List[str]]) -> float:
    if not preferred:
        return LOCATION_NO_PREFERENCE
    return LOCATION_MATCH if location_matches(location, preferred) else 0


def level_matches(level: str, preferred: Optional[str]) -> bool:
    return bool(preferred) and level.lower() == preferred.lower()


def experience_score(level: str, preferred: Optional[str]) -> float:
    return LEVEL_MATCH if level_matches(level, preferred) else LEVEL_OTHER


def calculate_match_score(opportunity: Opportunity, preferences: JobPreferences, user_skills: List[str]) -> int:
    total = (
        SKILL_WEIGHT * skill_match(opportunity.required_skills, user_skills)
        + title_affinity(opportunity.title, preferences.job_titles)
        + location_score(opportunity.location, preferences.locations)
        + experience_score(opportunity.experience_level, preferences.experience_level)
    )
    return max(0, min(100, round_half_up(total)))


def generate_match_reasons(
    opportunity: Opportunity, preferences: JobPreferences, user_skills: List[str], match_score: int
) -> List[str]:
    reasons = []

    matched = matched_skills(opportunity.required_skills, user_skills)
    if matched:
        reasons.append(f"{len(matched)} matching skills: {', '.join(matched[:MAX_REASON_SKILLS])}")
    elif not opportunity.required_skills:
        reasons.append("Open to all skill backgrounds")

    if title_matches(opportunity.title, preferences.job_titles):
        reasons.append("Job title matches your preferences")
    if location_matches(opportunity.location, preferences.locations):
        reasons.append("Location matches your preference")
    if level_matches(opportunity.experience_level, preferences.experience_level):
        reasons.append("Experience level matches your profile")

    if match_score >= 80:
        reasons.append("Strong overall match")
    elif match_score >= 70:
        reasons.append("Good overall match")

    return reasons


def user_skills_for(preferences: JobPreferences, profile: Optional[StructuredProfile]) -> List[str]:
    if profile is not None and profile.skills:
        return profile.skills
    return preferences.skills


def match(
    preferences: JobPreferences,
    profile: Optional[StructuredProfile],
    catalog,
    floor: int = 50,
    limit: int = 10,
) -> List[ScoredOpportunity]:
    """Score every catalog opportunity, drop those under `floor`, best first, at most `limit`."""
    user_skills = user_skills_for(preferences, profile)
    scored = []
    for opp in catalog.list_opportunities():
        s = calculate_match_score(opp, preferences, user_skills)
        if s < floor:
            continue
        scored.append(ScoredOpportunity(opp, s, generate_match_reasons(opp, preferences, user_skills, s)))

    # sorted() is stable, ties keep catalog order
    scored = sorted(scored, key=lambda x: x.match_score, reverse=True)
    return scored[:limit]


class JobMatchingService:

    def __init__(self, repository, catalog, settings: MatchingSettings = None):
        self.repository = repository
        self.catalog = catalog
        self.settings = settings or MatchingSettings()

    async def match_jobs(self, owner_id: str, preferences: JobPreferences) -> List[MatchRecord]:
        latest = await self.repository.find_latest_resume(owner_id)
        results = match(
            preferences,
            latest.profile if latest else None,
            self.catalog,
            floor=self.settings.match_floor,
            limit=self.settings.max_results,
        )

        records = []
        for r in results:
            opp = r.opportunity
            record = MatchRecord(
                owner_id=owner_id,
                title=opp.title,
                organization=opp.organization,
                description=opp.description,
                required_skills=opp.required_skills,
                location=opp.location,
                compensation=opp.compensation,
                url=opp.url,
                match_score=r.match_score,
                match_reasons=r.match_reasons,
            )
            records.append(await self.repository.create_match(record))

        logger.info(
            f"Matched {len(records)} opportunities for owner {owner_id}",
            extra={"owner_id": owner_id, "match_count": len(records)}
        )
        return records

    async def get_user_matches(self, owner_id: str) -> List[MatchRecord]:
        return await self.repository.find_matches(owner_id)
