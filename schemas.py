"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Each top-level model represents a collection in the database.
Model name is converted to lowercase for the collection name.
"""
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatTurn(BaseModel):
    role: str = Field(..., description="user|model")
    text: str = ""


class PlayerProfile(BaseModel):
    identifier: str = Field(..., description="Jersey number or name the model reported")
    position: Optional[str] = None
    grade: Optional[str] = None
    notes: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_utcnow)


class Session(BaseModel):
    session_id: str = Field(..., description="sess_<epoch millis>")
    owner: str = Field(..., description="Authenticated user id")
    title: str = "New Session"
    type: str = Field("team", description="team or a position tag (qb, wr, ...)")
    sport: str = "football"
    history: List[ChatTurn] = Field(default_factory=list)
    roster: List[PlayerProfile] = Field(default_factory=list)


class Clip(BaseModel):
    owner: str = Field(..., description="Authenticated user id")
    session_id: str = Field(..., description="Parent session id")
    sport: Optional[str] = None
    title: str = "Analyzing..."
    formation: str = "..."
    o_formation: Optional[str] = None
    d_formation: Optional[str] = None
    section: str = "Inbox"
    video_url: Optional[str] = Field(None, description="CDN secure url")
    public_id: Optional[str] = Field(None, description="CDN asset id, used for deletes")
    gemini_file_uri: Optional[str] = None
    full_data: Optional[Dict[str, Any]] = Field(None, description="Parsed model output")
    chat_history: List[ChatTurn] = Field(default_factory=list)
    snapshots: List[str] = Field(default_factory=list, description="Image data urls")
