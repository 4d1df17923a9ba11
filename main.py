import os
import json
import asyncio
import time
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel
from pymongo.errors import PyMongoError

import analysis
import database
import storage
from auth import require_user
from database import create_document, get_collection, get_documents, serialize, to_object_id
from schemas import Session

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("vantage-vision")

app = FastAPI(title="Vantage Vision API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


class CreateSessionRequest(BaseModel):
    title: Optional[str] = None
    type: Optional[str] = None


class DeleteSessionRequest(BaseModel):
    session_id: str


class UpdateClipRequest(BaseModel):
    id: str
    section: str


class UpdateClipDataRequest(BaseModel):
    clip_id: str
    title: Optional[str] = None
    summary: Optional[str] = None
    o_formation: Optional[str] = None
    d_formation: Optional[str] = None


class DeleteClipRequest(BaseModel):
    id: str


class SnapshotRequest(BaseModel):
    clip_id: str
    image_data: str


class ClipChatRequest(BaseModel):
    clip_id: str
    message: str


class ChatRequest(BaseModel):
    session_id: str
    message: Optional[str] = None
    file_data: Optional[str] = None
    mime_type: str = "video/mp4"
    sport: Optional[str] = None
    position: str = "team"
    rules: Optional[Dict[str, str]] = None
    playbook: Optional[Dict[str, Any]] = None


# ---------------------
# Static pages
# ---------------------

@app.get("/")
async def root():
    return FileResponse(os.path.join(STATIC_DIR, "index.html"))


@app.get("/privacy.html")
async def privacy():
    return FileResponse(os.path.join(STATIC_DIR, "privacy.html"))


@app.get("/terms.html")
async def terms():
    return FileResponse(os.path.join(STATIC_DIR, "terms.html"))


@app.get("/health")
async def health():
    return {"status": "ok", "service": "vantage-vision", "database": database.db is not None}


# ---------------------
# Sessions
# ---------------------

@app.post("/api/create-session")
async def create_session(body: CreateSessionRequest, user_id: str = Depends(require_user)):
    try:
        session = create_document("session", Session(
            session_id=f"sess_{int(time.time() * 1000)}",
            owner=user_id,
            title=body.title or "New Session",
            type=body.type or "team",
        ))
    except Exception as e:
        logger.exception("Create session failed")
        return _error(500, str(e))
    return serialize(session)


@app.get("/api/sessions")
async def list_sessions(type: Optional[str] = None, user_id: str = Depends(require_user)):
    query = {"owner": user_id}
    if type:
        query["type"] = type
    try:
        sessions = get_documents("session", query, sort=[("_id", -1)])
    except PyMongoError:
        logger.exception("List sessions failed")
        return []
    return [{"id": s["session_id"], "title": s.get("title"), "type": s.get("type")} for s in sessions]


@app.get("/api/session/{session_id}")
async def get_session(session_id: str, user_id: str = Depends(require_user)):
    try:
        session = get_collection("session").find_one({"session_id": session_id, "owner": user_id})
    except PyMongoError:
        logger.exception("Get session failed")
        session = None
    session = session or {}
    return {"history": session.get("history", []), "roster": session.get("roster", [])}


@app.post("/api/delete-session")
async def delete_session(body: DeleteSessionRequest, user_id: str = Depends(require_user)):
    query = {"session_id": body.session_id, "owner": user_id}
    try:
        clips = get_collection("clip")
        for clip in clips.find(query):
            if clip.get("public_id"):
                await asyncio.to_thread(storage.delete_video, clip["public_id"])
        clips.delete_many(query)
        get_collection("session").delete_one(query)
    except Exception:
        logger.exception("Delete session %s failed", body.session_id)
        return _error(500, "Delete failed")
    return {"success": True}


# ---------------------
# Clips
# ---------------------

@app.get("/api/search")
async def search_clips(session_id: Optional[str] = None, user_id: str = Depends(require_user)):
    if not session_id:
        return []
    try:
        clips = get_documents(
            "clip",
            {"owner": user_id, "session_id": session_id},
            sort=[("section", 1), ("created_at", -1)],
        )
    except PyMongoError:
        logger.exception("Clip search failed")
        return []
    return [serialize(c) for c in clips]


@app.post("/api/update-clip")
async def update_clip(body: UpdateClipRequest, user_id: str = Depends(require_user)):
    oid = to_object_id(body.id)
    try:
        if oid:
            get_collection("clip").update_one({"_id": oid, "owner": user_id}, {"$set": {"section": body.section}})
    except PyMongoError:
        logger.exception("Update clip %s failed", body.id)
        return _error(500, "Update failed")
    return {"success": True}


@app.post("/api/update-clip-data")
async def update_clip_data(body: UpdateClipDataRequest, user_id: str = Depends(require_user)):
    oid = to_object_id(body.clip_id)
    try:
        clips = get_collection("clip")
        clip = clips.find_one({"_id": oid, "owner": user_id}) if oid else None
        if not clip:
            return _error(404, "Clip not found")

        updates = {
            "title": body.title,
            "o_formation": body.o_formation,
            "d_formation": body.d_formation,
            "formation": f"{body.o_formation} vs {body.d_formation}",
        }
        full_data = clip.get("full_data")
        if full_data:
            full_data["title"] = body.title
            if isinstance(full_data.get("data"), dict):
                full_data["data"]["o_formation"] = body.o_formation
                full_data["data"]["d_formation"] = body.d_formation
            if isinstance(full_data.get("scouting_report"), dict):
                full_data["scouting_report"]["summary"] = body.summary
            updates["full_data"] = full_data

        clips.update_one({"_id": oid, "owner": user_id}, {"$set": updates})
    except PyMongoError:
        logger.exception("Update clip data %s failed", body.clip_id)
        return _error(500, "Data Update failed")
    return {"success": True}


@app.post("/api/delete-clip")
async def delete_clip(body: DeleteClipRequest, user_id: str = Depends(require_user)):
    oid = to_object_id(body.id)
    try:
        clips = get_collection("clip")
        clip = clips.find_one({"_id": oid, "owner": user_id}) if oid else None
        if clip:
            if clip.get("public_id"):
                await asyncio.to_thread(storage.delete_video, clip["public_id"])
            clips.delete_one({"_id": oid, "owner": user_id})
    except Exception:
        logger.exception("Delete clip %s failed", body.id)
        return _error(500, "Delete failed")
    return {"success": True}


@app.post("/api/save-snapshot")
async def save_snapshot(body: SnapshotRequest, user_id: str = Depends(require_user)):
    oid = to_object_id(body.clip_id)
    try:
        if oid:
            get_collection("clip").update_one(
                {"_id": oid, "owner": user_id},
                {"$push": {"snapshots": body.image_data}},
            )
    except PyMongoError:
        logger.exception("Save snapshot for %s failed", body.clip_id)
        return _error(500, "Save failed")
    return {"success": True}


# ---------------------
# Chat and analysis
# ---------------------

@app.post("/api/clip-chat")
async def clip_chat(body: ClipChatRequest, user_id: str = Depends(require_user)):
    try:
        reply = await analysis.clip_chat(user_id, body.clip_id, body.message)
    except Exception:
        logger.exception("Clip chat failed")
        return _error(500, "Chat failed")
    return {"reply": reply}


@app.post("/api/chat")
async def chat(body: ChatRequest, user_id: str = Depends(require_user)):
    try:
        if not body.file_data:
            reply = await analysis.coach_chat(user_id, body.session_id, body.message or "", body.rules)
            return {"reply": reply}

        result, clip = await analysis.analyze_upload(
            owner=user_id,
            session_id=body.session_id,
            file_data=body.file_data,
            mime_type=body.mime_type,
            sport=body.sport,
            position=body.position,
            rules=body.rules,
            playbook=body.playbook,
        )
    except Exception as e:
        logger.exception("SERVER ERROR")
        return _error(500, str(e) or "Analysis failed.")
    return {"reply": json.dumps(result), "new_clip": serialize(clip)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
