from typing import List

from app.models.schemas import StructuredProfile

OPTIMIZE_SYSTEM_PROMPT = (
    "You are an expert resume writer and ATS optimization specialist. Your goal is to "
    "improve resumes for better ATS compatibility while maintaining accuracy and professionalism."
)

OPTIMIZE_INSTRUCTIONS = """
Please provide an optimized version with:
1. Enhanced professional summary (if missing or weak)
2. Additional relevant skills (if needed)
3. Improved experience descriptions with action verbs and quantifiable achievements
4. Better formatting and structure for ATS parsing
5. Keywords relevant to the candidate's field

Return the optimized data as a single JSON object with keys:
name, email, phone, skills, experience, education, summary.
experience items use keys: organization, title, start_date, end_date, description.
education items use keys: institution, credential, field, completion_date.
Dates are ISO 8601 strings. Do not invent employers, degrees or dates.
"""


def _fmt_date(value) -> str:
    return value.date().isoformat() if value else "Present"


def build_optimization_prompt(profile: StructuredProfile, suggestions: List[str]) -> str:
    parts = [
        "Please optimize the following resume for ATS (Applicant Tracking System) compatibility.\n",
        "Current Resume Data:",
        f"Name: {profile.name}",
        f"Email: {profile.email}",
    ]
    if profile.phone:
        parts.append(f"Phone: {profile.phone}")
    parts.append("")

    if profile.summary:
        parts += ["Summary:", profile.summary, ""]

    if profile.skills:
        parts += ["Skills:", ", ".join(profile.skills), ""]

    if profile.experience:
        parts.append("Experience:")
        for i, exp in enumerate(profile.experience, start=1):
            parts.append(f"{i}. {exp.title} at {exp.organization}")
            parts.append(f"   {_fmt_date(exp.start_date)} - {_fmt_date(exp.end_date)}")
            parts.append(f"   {exp.description}")
        parts.append("")

    if profile.education:
        parts.append("Education:")
        for i, edu in enumerate(profile.education, start=1):
            parts.append(f"{i}. {edu.credential} in {edu.field}")
            parts.append(f"   {edu.institution}, {_fmt_date(edu.completion_date)}")
        parts.append("")

    parts.append("Improvement Suggestions:")
    for i, suggestion in enumerate(suggestions, start=1):
        parts.append(f"{i}. {suggestion}")

    return "\n".join(parts) + "\n" + OPTIMIZE_INSTRUCTIONS
