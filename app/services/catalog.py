"""
Opportunity catalogs. Both implementations are read-only sources of listings.
"""
import json
from pathlib import Path
from typing import List, Sequence

from pydantic import ValidationError as SchemaValidationError

from app.models.schemas import Opportunity
from app.models.settings import MatchingSettings
from app.utils.exceptions import ConfigurationError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_OPPORTUNITIES = [
    {
        "opportunity_id": "1",
        "title": "Senior Full Stack Developer",
        "organization": "Tech Corp",
        "description": "Build scalable web applications",
        "required_skills": ["JavaScript", "TypeScript", "React", "Node.js"],
        "location": "San Francisco, CA",
        "experience_level": "Senior",
        "compensation": "$120k - $180k",
        "url": "https://example.com/job/1",
    },
    {
        "opportunity_id": "2",
        "title": "Frontend Engineer",
        "organization": "StartupXYZ",
        "description": "Create beautiful user interfaces",
        "required_skills": ["React", "TypeScript", "CSS", "HTML"],
        "location": "Remote",
        "experience_level": "Mid-level",
        "compensation": "$90k - $130k",
        "url": "https://example.com/job/2",
    },
    {
        "opportunity_id": "3",
        "title": "Backend Developer",
        "organization": "Enterprise Solutions",
        "description": "Design and implement APIs",
        "required_skills": ["Node.js", "PostgreSQL", "Docker", "AWS"],
        "location": "New York, NY",
        "experience_level": "Mid-level",
        "compensation": "$100k - $140k",
        "url": "https://example.com/job/3",
    },
    {
        "opportunity_id": "4",
        "title": "DevOps Engineer",
        "organization": "Cloud Services Inc",
        "description": "Manage infrastructure and deployments",
        "required_skills": ["Docker", "Kubernetes", "AWS", "CI/CD"],
        "location": "Austin, TX",
        "experience_level": "Senior",
        "compensation": "$110k - $160k",
        "url": "https://example.com/job/4",
    },
    {
        "opportunity_id": "5",
        "title": "Software Engineer",
        "organization": "Innovation Labs",
        "description": "Work on cutting-edge projects",
        "required_skills": ["Python", "JavaScript", "React", "MongoDB"],
        "location": "Seattle, WA",
        "experience_level": "Junior",
        "compensation": "$70k - $100k",
        "url": "https://example.com/job/5",
    },
]


class StaticOpportunityCatalog:
    """The built-in listings used when no catalog file is configured."""

    def __init__(self, opportunities: Sequence[Opportunity] = None):
        if opportunities is None:
            opportunities = [Opportunity(**o) for o in DEFAULT_OPPORTUNITIES]
        self._opportunities = tuple(opportunities)

    def list_opportunities(self) -> List[Opportunity]:
        return list(self._opportunities)


class JsonFileOpportunityCatalog(StaticOpportunityCatalog):
    """Listings loaded once from a JSON array on disk."""

    def __init__(self, path: str):
        self.path = Path(path)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read opportunity catalog {path}: {e}", cause=e)

        if not isinstance(raw, list):
            raise ConfigurationError(f"Opportunity catalog {path} must be a JSON array")
        try:
            opportunities = [Opportunity(**item) for item in raw]
        except (TypeError, SchemaValidationError) as e:
            raise ConfigurationError(f"Invalid opportunity in {path}: {e}", cause=e)

        logger.info(f"Loaded {len(opportunities)} opportunities from {path}")
        super().__init__(opportunities)


def build_catalog(settings: MatchingSettings) -> StaticOpportunityCatalog:
    if settings.catalog_path:
        return JsonFileOpportunityCatalog(settings.catalog_path)
    return StaticOpportunityCatalog()
