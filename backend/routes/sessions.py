"""Calibration, session lifecycle, creative tools, memory, and thumbnail endpoints."""

import re

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from backend import sessions
from velvet.llm import MISSING_KEY_MESSAGE, FailureKind
from velvet.models import AgentStage, UserProfile
from velvet.pipeline import Orchestrator, calibrate_profile

from .models import (
    CalibrateBody,
    ChatBody,
    CopyBody,
    CreateSession,
    ImageEditBody,
    VisualBody,
)

router = APIRouter()


def _require_credentials() -> None:
    if not sessions.has_credentials():
        raise HTTPException(503, MISSING_KEY_MESSAGE)


def _session(session_id: str) -> Orchestrator:
    orchestrator = sessions.get_session(session_id)
    if orchestrator is None:
        raise HTTPException(404, "Session not found")
    return orchestrator


def _require_draft(orchestrator: Orchestrator) -> None:
    if orchestrator.draft is None:
        raise HTTPException(409, "No experience has been generated yet")


def _view(session_id: str, orchestrator: Orchestrator) -> dict:
    data = orchestrator.snapshot().model_dump(mode="json")
    data["id"] = session_id
    return data


def _cycle_result(session_id: str, orchestrator: Orchestrator) -> dict:
    failure = orchestrator.failure
    if failure is not None and failure.kind is FailureKind.MISSING_CREDENTIAL:
        raise HTTPException(503, MISSING_KEY_MESSAGE)
    return _view(session_id, orchestrator)


@router.post("/calibrate")
async def calibrate(body: CalibrateBody):
    """Infer a profile from a name and bio. Falls back to a default profile."""
    _require_credentials()
    try:
        profile = await calibrate_profile(
            sessions.service(), body.name, body.bio, body.mood_board_url
        )
    except ValueError as e:
        raise HTTPException(422, str(e))
    return profile.model_dump(mode="json")


@router.post("/sessions")
async def create_session(body: CreateSession):
    """Confirm a profile, open a session, and run the first creative cycle."""
    _require_credentials()
    if not body.name.strip():
        raise HTTPException(422, "Name must not be blank")
    profile = UserProfile(**body.model_dump())
    session_id, orchestrator = sessions.create_session(profile)
    await orchestrator.run_cycle()
    return _cycle_result(session_id, orchestrator)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    """Current session state: stage, logs, draft, chat, memory, drift alert."""
    return _view(session_id, _session(session_id))


@router.delete("/sessions/{session_id}")
async def reset_session(session_id: str):
    """Drop the session. Stored memory for the person is kept."""
    orchestrator = _session(session_id)
    await orchestrator.drain()
    sessions.delete_session(session_id)
    return {"ok": True}


@router.post("/sessions/{session_id}/remix")
async def remix(session_id: str):
    """Regenerate product concepts against the current blueprint."""
    orchestrator = _session(session_id)
    _require_credentials()
    if orchestrator.stage is not AgentStage.COMPLETE or orchestrator.draft is None:
        raise HTTPException(409, "Remix is only available once a cycle is complete")
    await orchestrator.remix()
    await orchestrator.drain()
    return _cycle_result(session_id, orchestrator)


@router.post("/sessions/{session_id}/chat")
async def chat(session_id: str, body: ChatBody):
    """Ask the simulated persona a question about the page."""
    orchestrator = _session(session_id)
    _require_credentials()
    _require_draft(orchestrator)
    if not body.message.strip():
        raise HTTPException(422, "Message must not be blank")
    reply = await orchestrator.chat(body.message)
    await orchestrator.drain()
    return {"reply": reply, "chat_history": [m.model_dump() for m in orchestrator.chat_history]}


@router.post("/sessions/{session_id}/visual")
async def mutate_visual(session_id: str, body: VisualBody):
    """Apply a visual mutation to the design system."""
    orchestrator = _session(session_id)
    _require_credentials()
    _require_draft(orchestrator)
    applied = await orchestrator.mutate_visual(body.instruction)
    await orchestrator.drain()
    return {"applied": applied, "session": _view(session_id, orchestrator)}


@router.post("/sessions/{session_id}/copy")
async def polish_copy(session_id: str, body: CopyBody):
    """Rewrite the headline or subheadline in a new tone."""
    orchestrator = _session(session_id)
    _require_credentials()
    _require_draft(orchestrator)
    applied = await orchestrator.polish_copy(body.target, body.tone)
    await orchestrator.drain()
    return {"applied": applied, "session": _view(session_id, orchestrator)}


@router.post("/sessions/{session_id}/image-edit")
async def edit_image(session_id: str, body: ImageEditBody):
    """Edit the hero image or one product image with an instruction."""
    orchestrator = _session(session_id)
    _require_credentials()
    _require_draft(orchestrator)
    applied = await orchestrator.edit_image(body.target, body.instruction, body.index)
    if not applied:
        raise HTTPException(409, "No image to edit in that slot")
    return {"applied": applied, "session": _view(session_id, orchestrator)}


@router.delete("/sessions/{session_id}/memory")
async def clear_memory(session_id: str):
    """Wipe long-horizon memory for the session's person."""
    orchestrator = _session(session_id)
    await orchestrator.drain()
    orchestrator.clear_memory()
    return {"ok": True}


@router.delete("/sessions/{session_id}/drift-alert")
async def dismiss_drift_alert(session_id: str):
    """Dismiss the current preference-drift notice."""
    _session(session_id).dismiss_drift_alert()
    return {"ok": True}


@router.post("/sessions/{session_id}/thumbnail")
async def generate_thumbnail(session_id: str):
    """Render the shareable project thumbnail."""
    orchestrator = _session(session_id)
    _require_credentials()
    asset = await orchestrator.generate_thumbnail()
    return {"ok": asset is not None}


@router.get("/sessions/{session_id}/thumbnail")
async def download_thumbnail(session_id: str):
    """Download the project thumbnail as a PNG attachment."""
    orchestrator = _session(session_id)
    asset = orchestrator.thumbnail
    if asset is None:
        raise HTTPException(404, "No thumbnail has been generated")
    name = re.sub(r"[^A-Za-z0-9_-]+", "_", orchestrator.profile.name).strip("_") or "Project"
    return Response(
        content=asset.data,
        media_type=asset.mime_type,
        headers={"Content-Disposition": f'attachment; filename="Velvet_Project_{name}.png"'},
    )
