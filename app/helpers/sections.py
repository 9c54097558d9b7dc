"""
Line-oriented section scanner for resume text.

Each trimmed, non-empty line is tagged with the section it belongs to. The
scanner is a small state machine: the current tag changes only when a header
line is seen, and every other line inherits the current tag. Lines before the
first header are CONTACT.

Header lines are:
  * a known synonym on its own ("Work Experience", "SKILLS:", "## Education")
  * a known synonym followed by inline content ("Skills: Python, Docker");
    the inline content is tagged with that section
  * any other "Capitalized Words:" line with nothing after the colon, which
    opens an OTHER section and so closes whatever came before it
"""
import re
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class Section(str, Enum):
    CONTACT = "contact"
    SUMMARY = "summary"
    SKILLS = "skills"
    EXPERIENCE = "experience"
    EDUCATION = "education"
    OTHER = "other"


HEADER_SYNONYMS: Dict[Section, Tuple[str, ...]] = {
    Section.SKILLS: ("skills", "technical skills", "technologies", "core skills"),
    Section.EXPERIENCE: (
        "experience", "work experience", "employment", "professional experience",
        "employment history", "work history",
    ),
    Section.EDUCATION: ("education", "academic background", "qualifications"),
    Section.SUMMARY: (
        "summary", "objective", "profile", "about", "professional summary",
        "about me", "career objective",
    ),
}

_SYNONYM_LOOKUP: Dict[str, Section] = {
    synonym: section
    for section, synonyms in HEADER_SYNONYMS.items()
    for synonym in synonyms
}

_LABELED_LINE = re.compile(r"^([A-Za-z][A-Za-z &/]{0,48}?)\s*:\s*(.*)$")
_DECORATION = "#*-•=_ \t"


def _normalize(label: str) -> str:
    return re.sub(r"\s+", " ", label.strip().lower())


def classify_line(line: str) -> Optional[Tuple[Section, str]]:
    """Return (section, inline_text) when `line` is a header, else None."""
    stripped = line.strip().strip(_DECORATION)
    if not stripped:
        return None

    section = _SYNONYM_LOOKUP.get(_normalize(stripped.rstrip(":")))
    if section is not None:
        return section, ""

    m = _LABELED_LINE.match(stripped)
    if not m:
        return None

    label, rest = m.group(1), m.group(2).strip()
    section = _SYNONYM_LOOKUP.get(_normalize(label))
    if section is not None:
        return section, rest
    if not rest and label[0].isupper():
        return Section.OTHER, ""
    return None


def tag_lines(lines: Iterable[str]) -> List[Tuple[Section, str]]:
    tagged: List[Tuple[Section, str]] = []
    current = Section.CONTACT
    for line in lines:
        header = classify_line(line)
        if header is None:
            tagged.append((current, line))
            continue
        current, inline = header
        if inline:
            tagged.append((current, inline))
    return tagged


def split_sections(lines: Iterable[str]) -> Dict[Section, str]:
    """Group tagged lines into one text block per section."""
    blocks: Dict[Section, List[str]] = {}
    for section, line in tag_lines(lines):
        blocks.setdefault(section, []).append(line)
    return {section: "\n".join(body) for section, body in blocks.items()}
