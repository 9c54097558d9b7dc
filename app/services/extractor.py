"""
Heuristic resume extractor: raw text -> StructuredProfile.

Extraction is regex based and never raises on odd text; fields that cannot be
found come back empty. Experience and education entries carry placeholder
values: only the presence of a dated range or a degree keyword is detected.
"""
import re
from datetime import datetime
from typing import List, Optional, Union

from app.helpers.sections import Section, split_sections
from app.models.schemas import EducationEntry, ExperienceEntry, StructuredProfile
from app.utils.exceptions import ExtractionError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

MAX_NAME_LENGTH = 100
MAX_SUMMARY_LENGTH = 500

EMAIL_RE = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
PHONE_RE = re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
DATE_RANGE_RE = re.compile(r"\b((?:19|20)\d{2})\s*[-–]\s*((?:19|20)\d{2}|present|current)\b", re.IGNORECASE)
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")

SKILL_VOCABULARY = [
    'JavaScript', 'TypeScript', 'Python', 'Java', 'C#', 'Ruby', 'Go', 'Rust',
    'React', 'Angular', 'Vue', 'Node.js', 'Express', 'NestJS', 'Django', 'Flask',
    'PostgreSQL', 'MySQL', 'MongoDB', 'Redis', 'Docker', 'Kubernetes', 'AWS', 'Azure',
    'GCP', 'Git', 'CI/CD', 'REST', 'GraphQL', 'HTML', 'CSS', 'SQL', 'NoSQL',
    'Machine Learning', 'AI', 'TensorFlow', 'PyTorch', 'Spring Boot', 'Laravel',
    'Next.js', 'Tailwind', 'Bootstrap', 'Jest', 'Mocha', 'Pytest', 'JUnit',
]

# \b does not work around terms ending in symbols (C#, CI/CD), so use lookarounds
_SKILL_PATTERNS = [
    (skill, re.compile(rf"(?<!\w){re.escape(skill)}(?!\w)", re.IGNORECASE))
    for skill in SKILL_VOCABULARY
]

DEGREE_KEYWORDS = ['bachelor', 'master', 'phd', 'doctorate', 'associate', 'b.s.', 'm.s.', 'b.a.', 'm.a.']

PLACEHOLDER_ORGANIZATION = "Company Name"
PLACEHOLDER_TITLE = "Position"
PLACEHOLDER_DESCRIPTION = "Work experience description"
PLACEHOLDER_INSTITUTION = "University Name"
PLACEHOLDER_CREDENTIAL = "Degree"
PLACEHOLDER_FIELD = "Field of Study"


def normalize_lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def extract_name(lines: List[str]) -> str:
    name = lines[0] if lines else "Unknown"
    return name[:MAX_NAME_LENGTH]


def extract_email(text: str) -> str:
    m = EMAIL_RE.search(text)
    return m.group(0) if m else ""


def extract_phone(text: str) -> Optional[str]:
    m = PHONE_RE.search(text)
    return m.group(0) if m else None


def extract_skills(section_text: Optional[str]) -> List[str]:
    if not section_text:
        return []
    return [skill for skill, pattern in _SKILL_PATTERNS if pattern.search(section_text)]


def extract_experience(section_text: Optional[str]) -> List[ExperienceEntry]:
    if not section_text:
        return []

    entries = []
    for m in DATE_RANGE_RE.finditer(section_text):
        start_year = int(m.group(1))
        end = m.group(2).lower()
        end_date = None if end in ("present", "current") else datetime(int(end), 12, 31)
        entries.append(ExperienceEntry(
            organization=PLACEHOLDER_ORGANIZATION,
            title=PLACEHOLDER_TITLE,
            start_date=datetime(start_year, 1, 1),
            end_date=end_date,
            description=PLACEHOLDER_DESCRIPTION,
        ))
    return entries


def extract_education(section_text: Optional[str]) -> List[EducationEntry]:
    if not section_text:
        return []

    lowered = section_text.lower()
    if not any(keyword in lowered for keyword in DEGREE_KEYWORDS):
        return []

    year_match = YEAR_RE.search(section_text)
    year = int(year_match.group(0)) if year_match else datetime.utcnow().year
    return [EducationEntry(
        institution=PLACEHOLDER_INSTITUTION,
        credential=PLACEHOLDER_CREDENTIAL,
        field=PLACEHOLDER_FIELD,
        completion_date=datetime(year, 6, 1),
    )]


def extract_summary(section_text: Optional[str]) -> Optional[str]:
    if not section_text:
        return None
    return section_text[:MAX_SUMMARY_LENGTH]


def extract(raw_text: Union[str, bytes]) -> StructuredProfile:
    """Turn raw resume text into a StructuredProfile."""
    if isinstance(raw_text, bytes):
        try:
            raw_text = raw_text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExtractionError("Extraction failed: source is not valid UTF-8 text", cause=e)
    if raw_text is None:
        raw_text = ""

    lines = normalize_lines(raw_text)
    sections = split_sections(lines)

    profile = StructuredProfile(
        name=extract_name(lines),
        email=extract_email(raw_text),
        phone=extract_phone(raw_text),
        skills=extract_skills(sections.get(Section.SKILLS)),
        experience=extract_experience(sections.get(Section.EXPERIENCE)),
        education=extract_education(sections.get(Section.EDUCATION)),
        summary=extract_summary(sections.get(Section.SUMMARY)),
    )

    logger.debug(
        f"Extracted profile: {len(profile.skills)} skills, "
        f"{len(profile.experience)} experience, {len(profile.education)} education entries",
        extra={"sections": [s.value for s in sections]}
    )
    return profile
