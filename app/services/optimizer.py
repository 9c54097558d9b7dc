"""
Resume optimization.

The oracle path asks the text-generation backend for a rewritten profile and
merges it field by field over the original. The fallback path applies local,
deterministic rewrites. The fallback only ever adds content, so re-scoring its
output never lowers the overall score.
"""
import asyncio
from typing import Any, Dict, List

from app.models.response import OptimizationResponse
from app.models.schemas import ExperienceEntry, ResumeDocument, StructuredProfile
from app.utils.exceptions import NotFoundError
from app.utils.logging_config import get_logger, log_function_call

logger = get_logger(__name__)

ACTION_VERBS = ['Developed', 'Implemented', 'Designed', 'Led', 'Managed', 'Created']
GENERIC_ACHIEVEMENT = "Contributed to team success through effective collaboration and technical expertise."
MIN_SUMMARY_LENGTH = 50
MIN_DESCRIPTION_LENGTH = 20
TARGET_SKILL_COUNT = 5
MAX_SUGGESTED_SKILLS = 3

# (skills that trigger the suggestion, [(suggested skill, spellings that count as already held)])
COMPLEMENTARY_SKILLS = [
    (("javascript", "typescript"), [("Git", ("git",)), ("REST APIs", ("rest", "rest apis"))]),
    (("react", "vue", "angular"), [("HTML", ("html",)), ("CSS", ("css",))]),
]


def generate_basic_summary(profile: StructuredProfile) -> str:
    skills = ", ".join(profile.skills[:3]) or "a broad range of technologies"
    years = len(profile.experience)
    return (
        f"Professional with {years}+ years of experience in technology. Skilled in {skills}. "
        "Proven track record of delivering high-quality solutions and collaborating "
        "effectively with cross-functional teams."
    )


def suggest_complementary_skills(profile: StructuredProfile) -> List[str]:
    current = [s.lower() for s in profile.skills]
    suggestions: List[str] = []
    for triggers, candidates in COMPLEMENTARY_SKILLS:
        if not any(t in s for s in current for t in triggers):
            continue
        for skill, held_as in candidates:
            if not any(h in current for h in held_as) and skill not in suggestions:
                suggestions.append(skill)
    return suggestions[:MAX_SUGGESTED_SKILLS]


def enhance_description(description: str) -> str:
    if not description or len(description) < MIN_DESCRIPTION_LENGTH:
        return GENERIC_ACHIEVEMENT

    stripped = description.strip()
    if any(stripped.lower().startswith(verb.lower()) for verb in ACTION_VERBS):
        return description
    return f"Developed and {stripped[0].lower()}{stripped[1:]}"


def apply_basic_optimizations(profile: StructuredProfile) -> StructuredProfile:
    """Deterministic local rewrite used when the oracle is unavailable."""
    optimized = profile.copy(deep=True)

    if not optimized.summary or len(optimized.summary) < MIN_SUMMARY_LENGTH:
        optimized.summary = generate_basic_summary(profile)

    if len(optimized.skills) < TARGET_SKILL_COUNT:
        optimized.skills = optimized.skills + suggest_complementary_skills(profile)

    optimized.experience = [
        ExperienceEntry(**{**exp.dict(), "description": enhance_description(exp.description)})
        for exp in optimized.experience
    ]
    return optimized


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)):
        return len(value) > 0
    return True


def merge_oracle_profile(data: Dict[str, Any], original: StructuredProfile) -> StructuredProfile:
    """Prefer the oracle's non-empty values over the original, field by field.

    Raises pydantic's ValidationError when the merged result is not a valid
    profile.
    """
    merged = original.dict()
    for field in StructuredProfile.__fields__:
        value = data.get(field)
        if _present(value):
            merged[field] = value
    return StructuredProfile(**merged)


class OptimizationService:
    """Creates an optimized copy of a resume and scores it."""

    def __init__(self, repository, scoring_service, graph):
        self.repository = repository
        self.scoring_service = scoring_service
        self.graph = graph

    @log_function_call
    async def optimize_resume(self, owner_id: str, resume_id: str) -> OptimizationResponse:
        original = await self.repository.get_resume(resume_id)
        if original is None or original.owner_id != owner_id:
            raise NotFoundError("Resume not found", resource="resume", resource_id=resume_id)

        original_score, _ = await self.scoring_service.get_or_score(original)

        # graph nodes block on HTTP, keep them off the event loop
        state = await asyncio.to_thread(self.graph.invoke, {
            "profile": original.profile,
            "suggestions": original_score.suggestions,
        })

        if state["strategy"] == "fallback":
            logger.warning(
                f"Oracle optimization unavailable for resume {resume_id}, used local rewrite: {state.get('fallback_reason')}",
                extra={"resume_id": resume_id, "owner_id": owner_id}
            )

        file_name = f"optimized_{original.file_name}"
        optimized = ResumeDocument(
            owner_id=owner_id,
            file_name=file_name,
            file_url=f"/uploads/resumes/{owner_id}/{file_name}",
            profile=state["optimized"],
            source_resume_id=original.resume_id,
        )
        await self.repository.create_resume(optimized)
        new_score = await self.scoring_service.score_resume(optimized)

        logger.info(
            f"Optimized resume {resume_id} -> {optimized.resume_id}: "
            f"{original_score.overall_score} -> {new_score.overall_score} via {state['strategy']}",
            extra={"resume_id": resume_id, "owner_id": owner_id}
        )

        return OptimizationResponse(
            resume=optimized,
            score=new_score,
            original_score=original_score,
            strategy=state["strategy"],
            fallback_reason=state.get("fallback_reason"),
        )


__all__ = ["apply_basic_optimizations", "merge_oracle_profile", "OptimizationService"]
