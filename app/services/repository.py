"""
MongoDB-backed persistence for resumes, scores and job matches.

All reads are scoped by owner where the data is owned. The delivered flag on a
match is only ever changed through a conditional update so that duplicate or
concurrent delivery tasks cannot deliver the same match twice.
"""
from datetime import datetime
from typing import List, Optional

from pymongo import DESCENDING

from app.models.schemas import MatchRecord, ResumeDocument, ScoreRecord
from app.services.db import MATCHES, RESUMES, SCORES
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


def _strip_id(doc):
    if doc:
        doc.pop("_id", None)
    return doc


class MongoPipelineRepository:

    def __init__(self, database):
        self.resumes = database[RESUMES]
        self.scores = database[SCORES]
        self.matches = database[MATCHES]

    # -------- Resumes --------
    async def create_resume(self, resume: ResumeDocument) -> ResumeDocument:
        await self.resumes.insert_one(resume.dict())
        return resume

    async def get_resume(self, resume_id: str) -> Optional[ResumeDocument]:
        doc = await self.resumes.find_one({"resume_id": resume_id})
        return ResumeDocument(**_strip_id(doc)) if doc else None

    async def list_resumes(self, owner_id: str) -> List[ResumeDocument]:
        cursor = self.resumes.find({"owner_id": owner_id}).sort("uploaded_at", DESCENDING)
        docs = await cursor.to_list(length=None)
        return [ResumeDocument(**_strip_id(d)) for d in docs]

    async def find_latest_resume(self, owner_id: str) -> Optional[ResumeDocument]:
        cursor = self.resumes.find({"owner_id": owner_id}).sort("uploaded_at", DESCENDING).limit(1)
        docs = await cursor.to_list(length=1)
        return ResumeDocument(**_strip_id(docs[0])) if docs else None

    # -------- Scores --------
    async def upsert_score(self, record: ScoreRecord) -> ScoreRecord:
        await self.scores.update_one(
            {"resume_id": record.resume_id},
            {"$set": record.dict()},
            upsert=True,
        )
        return record

    async def get_score(self, resume_id: str) -> Optional[ScoreRecord]:
        doc = await self.scores.find_one({"resume_id": resume_id})
        return ScoreRecord(**_strip_id(doc)) if doc else None

    # -------- Matches --------
    async def create_match(self, match: MatchRecord) -> MatchRecord:
        await self.matches.insert_one(match.dict())
        return match

    async def get_match(self, match_id: str) -> Optional[MatchRecord]:
        doc = await self.matches.find_one({"match_id": match_id})
        return MatchRecord(**_strip_id(doc)) if doc else None

    async def find_matches(self, owner_id: str, delivered: Optional[bool] = None) -> List[MatchRecord]:
        query = {"owner_id": owner_id}
        if delivered is not None:
            query["delivered"] = delivered
        cursor = self.matches.find(query).sort([("match_score", DESCENDING), ("created_at", DESCENDING)])
        docs = await cursor.to_list(length=None)
        return [MatchRecord(**_strip_id(d)) for d in docs]

    async def owners_with_pending_matches(self) -> List[str]:
        return await self.matches.distinct("owner_id", {"delivered": False})

    async def mark_match_delivered(self, match_id: str, delivered_at: datetime = None) -> bool:
        """Compare-and-set delivered False -> True. Returns False if someone else won."""
        result = await self.matches.update_one(
            {"match_id": match_id, "delivered": False},
            {"$set": {"delivered": True, "delivered_at": delivered_at or datetime.utcnow()}},
        )
        if result.modified_count == 0:
            logger.debug(f"Match {match_id} was already delivered or no longer exists")
        return result.modified_count == 1
