import json
import pytest
from datetime import datetime
from unittest.mock import MagicMock

from app.models.schemas import EducationEntry, ExperienceEntry, StructuredProfile
from app.services.graph import build_optimization_graph
from app.services.optimizer import (
    GENERIC_ACHIEVEMENT, OptimizationService, apply_basic_optimizations,
    enhance_description, merge_oracle_profile, suggest_complementary_skills,
)
from app.services.scoring import ResumeScoringService, score
from app.utils.exceptions import NotFoundError, OracleError
from app.utils.utils import Fallback, Parsed, find_first_json_object, parse_json_reply
from conftest import FakeOracle, make_resume

PROFILES = [
    StructuredProfile(),
    StructuredProfile(name="Jane Doe", email="jane@example.com"),
    StructuredProfile(name="Jo", email="jo@example.com", skills=["JavaScript"], summary="Short."),
    StructuredProfile(
        name="Sam Frontend", email="sam@example.com", skills=["React", "TypeScript", "Git"],
        experience=[ExperienceEntry(organization="A", title="Dev", start_date=datetime(2020, 1, 1), description="")],
    ),
    StructuredProfile(
        name="Pat Senior", email="pat@example.com", phone="555-123-4567",
        skills=["Python", "Docker", "AWS", "Redis", "SQL", "Go"],
        experience=[
            ExperienceEntry(organization="A", title="Lead", start_date=datetime(2015, 1, 1),
                            description="Managed a team of eight engineers across two products"),
            ExperienceEntry(organization="B", title="Dev", start_date=datetime(2012, 1, 1),
                            description="Wrote services in Go and Python for billing"),
        ],
        education=[EducationEntry(institution="U", credential="BSc", field="CS", completion_date=datetime(2011, 6, 1))],
        summary="Engineer with a decade of experience shipping distributed systems at scale.",
    ),
]


class TestFallbackOptimizer:
    """Test cases for the deterministic local rewrite"""

    @pytest.mark.parametrize("profile", PROFILES)
    def test_fallback_never_lowers_overall_score(self, profile):
        before = score(profile)
        after = score(apply_basic_optimizations(profile))
        assert after.overall_score >= before.overall_score

    @pytest.mark.parametrize("profile", PROFILES)
    def test_fallback_keeps_facts(self, profile):
        optimized = apply_basic_optimizations(profile)
        assert optimized.name == profile.name
        assert optimized.email == profile.email
        assert optimized.phone == profile.phone
        assert optimized.skills[:len(profile.skills)] == profile.skills
        assert len(optimized.experience) == len(profile.experience)
        assert optimized.education == profile.education

    def test_short_summary_replaced(self):
        optimized = apply_basic_optimizations(PROFILES[2])
        assert optimized.summary.startswith("Professional with 0+ years of experience")
        assert len(optimized.summary) > 50

    def test_long_summary_kept(self):
        assert apply_basic_optimizations(PROFILES[4]).summary == PROFILES[4].summary

    def test_complementary_skills_skip_held(self):
        assert suggest_complementary_skills(PROFILES[3]) == ["REST APIs", "HTML", "CSS"]
        assert suggest_complementary_skills(PROFILES[2]) == ["Git", "REST APIs"]

    def test_skills_not_added_when_enough(self):
        assert apply_basic_optimizations(PROFILES[4]).skills == PROFILES[4].skills

    @pytest.mark.parametrize("description,expected", [
        ("", GENERIC_ACHIEVEMENT),
        ("Did stuff", GENERIC_ACHIEVEMENT),
        ("Managed a team of eight engineers", "Managed a team of eight engineers"),
        ("Wrote services in Go and Python", "Developed and wrote services in Go and Python"),
    ])
    def test_enhance_description(self, description, expected):
        assert enhance_description(description) == expected


class TestOracleReplyParsing:

    def test_first_object_with_braces_in_strings(self):
        text = 'Sure! {"summary": "uses {braces}", "skills": ["a"]} and {"other": 1}'
        assert json.loads(find_first_json_object(text)) == {"summary": "uses {braces}", "skills": ["a"]}

    def test_parse_reply_with_prose(self):
        result = parse_json_reply('Here you go:\n```json\n{"name": "Jane"}\n```')
        assert result == Parsed({"name": "Jane"})

    @pytest.mark.parametrize("reply", ["", "no json here", '{"unterminated": ', "{'single': 'quotes'}"])
    def test_parse_reply_falls_back(self, reply):
        assert isinstance(parse_json_reply(reply), Fallback)


class TestMerge:

    def test_prefers_non_empty_oracle_values(self, full_profile):
        merged = merge_oracle_profile({"summary": "New summary", "skills": [], "phone": ""}, full_profile)
        assert merged.summary == "New summary"
        assert merged.skills == full_profile.skills
        assert merged.phone == full_profile.phone

    def test_invalid_merge_raises(self, full_profile):
        from pydantic import ValidationError as SchemaValidationError
        with pytest.raises(SchemaValidationError):
            merge_oracle_profile({"experience": "ten years"}, full_profile)


class TestOptimizationGraph:
    """Test cases for the prompt -> generate -> parse -> merge flow"""

    def test_disabled_oracle_uses_fallback(self, full_profile):
        oracle = FakeOracle(content="{}")
        state = build_optimization_graph(oracle, enabled=False).invoke({"profile": full_profile, "suggestions": []})

        assert state["strategy"] == "fallback"
        assert state["fallback_reason"] == "oracle disabled"
        assert oracle.calls == []

    def test_oracle_reply_is_merged(self, full_profile):
        oracle = FakeOracle(content='Result: {"summary": "Rewritten summary that is long enough to count for the scorer."}')
        state = build_optimization_graph(oracle).invoke({"profile": full_profile, "suggestions": ["x"]})

        assert state["strategy"] == "oracle"
        assert state["optimized"].summary.startswith("Rewritten summary")
        assert state["optimized"].email == full_profile.email
        system, user = oracle.calls[0]
        assert system["role"] == "system"
        assert "Improvement Suggestions:\n1. x" in user["content"]

    @pytest.mark.parametrize("oracle", [
        FakeOracle(error=OracleError("connection refused")),
        FakeOracle(content="I cannot help with that."),
        FakeOracle(content='{"experience": "lots"}'),
        FakeOracle(error=ConnectionError("socket closed")),
        FakeOracle(error=KeyError("message")),
        FakeOracle(content=None),
        MagicMock(chat=MagicMock(return_value="plain text")),
        MagicMock(chat=MagicMock(return_value={"content": ["not", "text"]})),
    ])
    def test_oracle_failures_fall_back(self, oracle):
        profile = PROFILES[2]
        state = build_optimization_graph(oracle).invoke({"profile": profile, "suggestions": []})

        assert state["strategy"] == "fallback"
        assert state["fallback_reason"]
        assert state["optimized"] == apply_basic_optimizations(profile)


class TestOptimizationService:

    @pytest.mark.asyncio
    async def test_optimize_persists_new_resume(self, repository):
        resume = await repository.create_resume(make_resume("owner-1", PROFILES[2], file_name="cv.txt"))
        service = OptimizationService(repository, ResumeScoringService(repository), build_optimization_graph(None))

        result = await service.optimize_resume("owner-1", resume.resume_id)

        assert result.strategy == "fallback"
        assert result.resume.file_name == "optimized_cv.txt"
        assert result.resume.source_resume_id == resume.resume_id
        assert result.resume.resume_id in repository.resumes
        assert result.score.overall_score >= result.original_score.overall_score
        assert repository.scores[result.resume.resume_id] == result.score

    @pytest.mark.asyncio
    async def test_optimize_foreign_resume(self, repository):
        resume = await repository.create_resume(make_resume("owner-1", PROFILES[1]))
        service = OptimizationService(repository, ResumeScoringService(repository), build_optimization_graph(None))

        with pytest.raises(NotFoundError):
            await service.optimize_resume("owner-2", resume.resume_id)

    @pytest.mark.asyncio
    async def test_optimize_survives_misbehaving_oracle(self, repository):
        resume = await repository.create_resume(make_resume("owner-1", PROFILES[2], file_name="cv.txt"))
        graph = build_optimization_graph(FakeOracle(error=ConnectionError("socket closed")))
        service = OptimizationService(repository, ResumeScoringService(repository), graph)

        result = await service.optimize_resume("owner-1", resume.resume_id)

        assert result.strategy == "fallback"
        assert result.fallback_reason == "oracle unavailable: ConnectionError"
        assert result.resume.profile == apply_basic_optimizations(PROFILES[2])
