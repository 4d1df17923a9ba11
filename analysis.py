"""
Analysis orchestration: video upload and model analysis, roster updates,
clip follow-up chat and text-only coaching chat.
"""
import os
import re
import copy
import json
import uuid
import base64
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import gemini
import prompts
import storage
from database import create_document, get_collection, to_object_id
from schemas import Clip

logger = logging.getLogger(__name__)

BASE_DIR = os.getcwd()
DATA_DIR = os.path.join(BASE_DIR, "data")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(DATA_DIR, "temp_uploads"))
os.makedirs(UPLOAD_DIR, exist_ok=True)

NEEDS_ANALYSIS_REPLY = "Analysis needed first."

ANALYSIS_ERROR_PAYLOAD = {
    "title": "Analysis Error",
    "data": {"o_formation": "Error", "d_formation": "Error"},
    "scouting_report": {"summary": "The AI analysis could not be processed. Please try again."},
}

_FENCE_RE = re.compile(r"```(?:json)?")
_DATA_URL_RE = re.compile(r"^data:[^;,]*;base64,")


def parse_analysis(text: str) -> Dict[str, Any]:
    """Parse the model's JSON reply, substituting the error payload when it is malformed."""
    cleaned = _FENCE_RE.sub("", text or "").strip()
    try:
        result = json.loads(cleaned)
    except json.JSONDecodeError:
        result = None
    if not isinstance(result, dict):
        logger.error("AI JSON Parse Error: %s", text)
        return copy.deepcopy(ANALYSIS_ERROR_PAYLOAD)
    if not isinstance(result.get("data"), dict):
        result["data"] = {"o_formation": "Unknown", "d_formation": "Unknown"}
    return result


def merge_roster(
    roster: List[Dict[str, Any]],
    players: List[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Fold detected players into the roster in place, matching on identifier.

    Anything that is not a list of objects is ignored.
    """
    now = now or datetime.now(timezone.utc)
    if not isinstance(players, list):
        return roster
    for player in players:
        if not isinstance(player, dict):
            continue
        observation = player.get("observation")
        weakness = player.get("weakness")
        existing = next((r for r in roster if r.get("identifier") == player.get("identifier")), None)
        if existing is not None:
            existing["grade"] = player.get("grade")
            if observation:
                existing.setdefault("notes", []).append(observation)
            if weakness:
                existing.setdefault("weaknesses", []).append(weakness)
            existing["last_updated"] = now
        else:
            roster.append({
                "identifier": player.get("identifier"),
                "position": player.get("position"),
                "grade": player.get("grade"),
                "notes": [observation] if observation else [],
                "weaknesses": [weakness] if weakness else [],
                "last_updated": now,
            })
    return roster


def _write_temp_video(file_data: str) -> str:
    payload = base64.b64decode(_DATA_URL_RE.sub("", file_data))
    path = os.path.join(UPLOAD_DIR, f"upload_{uuid.uuid4().hex}.mp4")
    with open(path, "wb") as f:
        f.write(payload)
    return path


def _remove_temp(path: Optional[str]) -> None:
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError:
            logger.exception("Could not remove temp upload %s", path)


async def analyze_upload(
    owner: str,
    session_id: str,
    file_data: str,
    mime_type: str,
    sport: Optional[str] = None,
    position: str = "team",
    rules: Optional[Dict[str, str]] = None,
    playbook: Optional[Dict[str, Any]] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Upload a clip, run the model over it and store the result.

    Returns the parsed analysis and the updated clip document.
    """
    temp_path = None
    try:
        temp_path = _write_temp_video(file_data)

        # both threads read the temp file, so wait for each before cleanup can run
        cloud, uploaded = await asyncio.gather(
            asyncio.to_thread(storage.upload_video, temp_path),
            asyncio.to_thread(gemini.upload_file, temp_path, mime_type),
            return_exceptions=True,
        )
        for outcome in (cloud, uploaded):
            if isinstance(outcome, BaseException):
                raise outcome

        clip = create_document("clip", Clip(
            owner=owner,
            session_id=session_id,
            sport=sport,
            video_url=cloud.get("secure_url"),
            public_id=cloud.get("public_id"),
        ))

        file = await gemini.wait_for_file(uploaded.name)

        sessions = get_collection("session")
        session = sessions.find_one({"session_id": session_id, "owner": owner})
        roster = list(session.get("roster") or []) if session else []

        prompt = prompts.analysis_prompt(
            position,
            prompts.rules_context(rules),
            prompts.playbook_context(playbook),
            roster,
        )
        response = await asyncio.to_thread(gemini.generate_with_fallback, [file, prompt])
        result = parse_analysis(response.text)

        players = result.get("players_detected") or []
        if players and session:
            merge_roster(roster, players)
            sessions.update_one(
                {"session_id": session_id, "owner": owner},
                {"$set": {"roster": roster}},
            )

        o_formation = result["data"].get("o_formation")
        d_formation = result["data"].get("d_formation")
        updates = {
            "title": result.get("title") or "Untitled Clip",
            "o_formation": o_formation,
            "d_formation": d_formation,
            "formation": f"{o_formation} vs {d_formation}",
            "full_data": result,
            "gemini_file_uri": file.uri,
        }
        get_collection("clip").update_one({"_id": clip["_id"], "owner": owner}, {"$set": updates})
        clip.update(updates)

        sessions.update_one(
            {"session_id": session_id, "owner": owner},
            {"$push": {"history": {"$each": [
                {"role": "user", "text": "Uploaded Video Analysis"},
                {"role": "model", "text": json.dumps(result)},
            ]}}},
        )
        return result, clip
    finally:
        _remove_temp(temp_path)


async def coach_chat(owner: str, session_id: str, message: str, rules: Optional[Dict[str, str]] = None) -> str:
    sessions = get_collection("session")
    query = {"session_id": session_id, "owner": owner}
    sessions.update_one(query, {"$push": {"history": {"role": "user", "text": message}}})
    response = await asyncio.to_thread(
        gemini.generate_with_fallback,
        [prompts.coach_chat_prompt(prompts.rules_context(rules), message)],
        False,
    )
    reply = response.text
    sessions.update_one(query, {"$push": {"history": {"role": "model", "text": reply}}})
    return reply


async def clip_chat(owner: str, clip_id: str, message: str) -> str:
    oid = to_object_id(clip_id)
    clips = get_collection("clip")
    clip = clips.find_one({"_id": oid, "owner": owner}) if oid else None
    if not clip or not clip.get("full_data"):
        return NEEDS_ANALYSIS_REPLY

    session = get_collection("session").find_one({"session_id": clip.get("session_id"), "owner": owner})
    roster = session.get("roster", []) if session else []
    prompt = prompts.clip_chat_prompt(clip["full_data"], roster, clip.get("chat_history") or [], message)

    response = await asyncio.to_thread(gemini.generate_with_fallback, [prompt], False)
    reply = response.text

    clips.update_one(
        {"_id": oid, "owner": owner},
        {"$push": {"chat_history": {"$each": [
            {"role": "user", "text": message},
            {"role": "model", "text": reply},
        ]}}},
    )
    return reply
