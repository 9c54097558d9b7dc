from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


# -------- Profiles --------
class ExperienceEntry(BaseModel):
    organization: str = ""
    title: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: str = ""


class EducationEntry(BaseModel):
    institution: str = ""
    credential: str = ""
    field: str = ""
    completion_date: Optional[datetime] = None


class StructuredProfile(BaseModel):
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience: List[ExperienceEntry] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    summary: Optional[str] = None

    @validator('skills', 'experience', 'education', pre=True)
    def none_to_empty(cls, v):
        return [] if v is None else v

    @validator('skills')
    def dedupe_skills(cls, v):
        # set semantics, first spelling wins
        seen = set()
        out = []
        for s in v:
            s = s.strip()
            if s and s.lower() not in seen:
                seen.add(s.lower())
                out.append(s)
        return out


# -------- Resumes --------
class ResumeDocument(BaseModel):
    resume_id: str = Field(default_factory=_new_id)
    owner_id: str
    file_name: str
    file_url: str = ""
    profile: StructuredProfile
    source_resume_id: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ResumeUploadInput(BaseModel):
    """Resume upload as a base64 JSON payload"""
    filename: str
    base64_content: str


# -------- Scores --------
class ScoreRecord(BaseModel):
    resume_id: Optional[str] = None
    overall_score: int = Field(ge=0, le=100)
    structural_score: int = Field(ge=0, le=100)
    content_score: int = Field(ge=0, le=100)
    suggestions: List[str] = Field(default_factory=list, max_length=5)
    computed_at: datetime = Field(default_factory=datetime.utcnow)


# -------- Matching --------
class JobPreferences(BaseModel):
    job_titles: List[str] = Field(default_factory=list, max_length=20)
    skills: List[str] = Field(..., min_length=1, max_length=50)
    locations: Optional[List[str]] = Field(default=None, max_length=20)
    experience_level: Optional[str] = Field(default=None, max_length=50)

    @validator('job_titles', 'skills', 'locations', pre=True)
    def strip_items(cls, v):
        if isinstance(v, list):
            stripped = [s.strip() if isinstance(s, str) else s for s in v]
            # blank entries carry no preference
            return [s for s in stripped if s != ""]
        return v

    @validator('job_titles')
    def title_length(cls, v):
        if any(len(t) > 100 for t in v):
            raise ValueError('Each job title must not exceed 100 characters')
        return v

    @validator('skills')
    def skill_length(cls, v):
        if any(len(s) > 50 for s in v):
            raise ValueError('Each skill must not exceed 50 characters')
        return v

    @validator('locations')
    def location_length(cls, v):
        if v is not None and any(len(loc) > 100 for loc in v):
            raise ValueError('Each location must not exceed 100 characters')
        return v

    @validator('experience_level', pre=True)
    def strip_level(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class Opportunity(BaseModel):
    opportunity_id: str = Field(default_factory=_new_id)
    title: str
    organization: str
    description: str = ""
    required_skills: List[str] = Field(default_factory=list)
    location: str = ""
    experience_level: str = ""
    compensation: Optional[str] = None
    url: Optional[str] = None


class MatchRecord(BaseModel):
    match_id: str = Field(default_factory=_new_id)
    owner_id: str
    title: str
    organization: str
    description: str = ""
    required_skills: List[str] = Field(default_factory=list)
    location: str = ""
    compensation: Optional[str] = None
    url: Optional[str] = None
    match_score: int = Field(ge=0, le=100)
    match_reasons: List[str] = Field(default_factory=list)
    delivered: bool = False
    delivered_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


# -------- Notifications --------
class DeliveryTask(BaseModel):
    task_id: str = Field(default_factory=_new_id)
    name: str  # notify-new-jobs | check-new-jobs
    owner_id: str
    match_id: Optional[str] = None
    delay_seconds: float = 0.0
    attempts: int = 3
    backoff_delay_seconds: float = 2.0
    enqueued_at: datetime = Field(default_factory=datetime.utcnow)

    def backoff_for(self, attempt: int) -> float:
        """Delay before retrying after failed attempt number `attempt` (1-based)"""
        return self.backoff_delay_seconds * (2 ** (attempt - 1))


class NotificationMessage(BaseModel):
    to: str
    subject: str
    body: str
