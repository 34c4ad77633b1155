"""Process-wide app state: resolved settings, the generative client, the memory
store, and the live session registry.

init_sessions() must be called once (create_app does it) before any route runs.
Sessions are in-memory only; a restart drops them. Memory events survive
because every Orchestrator persists them through the shared MemoryStore.

The generative client is rebuilt whenever the stored API key changes, and
every Orchestrator created afterwards receives the new one. Existing sessions
keep the client they were created with.
"""

import logging
import uuid
from pathlib import Path

from velvet.config import Settings, build_client, load_settings
from velvet.llm import GenerativeService
from velvet.models import UserProfile
from velvet.pipeline import Orchestrator
from velvet.storage import MemoryStore

logger = logging.getLogger(__name__)

_settings: Settings | None = None
_store: MemoryStore | None = None
_service: GenerativeService | None = None
_service_override = False
_sessions: dict[str, Orchestrator] = {}


def init_sessions(data_dir: Path | None = None, service: GenerativeService | None = None) -> None:
    """(Re)initialise app state. Passing `service` pins it, e.g. for tests."""
    global _settings, _store, _service, _service_override
    _settings = load_settings(data_dir)
    _settings.data_dir.mkdir(parents=True, exist_ok=True)
    _store = MemoryStore(_settings.data_dir)
    _service_override = service is not None
    _service = service or build_client(_settings)
    _sessions.clear()
    logger.info(
        "Sessions initialised (data_dir=%s, api key %s)",
        _settings.data_dir, "present" if _settings.has_api_key else "missing",
    )


def reload_settings() -> Settings:
    """Re-resolve settings after a config change and rebuild the client."""
    global _settings, _service
    _settings = load_settings(settings().data_dir)
    if not _service_override:
        _service = build_client(_settings)
    return _settings


def settings() -> Settings:
    if _settings is None:
        raise RuntimeError("init_sessions() has not been called")
    return _settings


def store() -> MemoryStore:
    if _store is None:
        raise RuntimeError("init_sessions() has not been called")
    return _store


def service() -> GenerativeService:
    if _service is None:
        raise RuntimeError("init_sessions() has not been called")
    return _service


def has_credentials() -> bool:
    """False only when the active client is known to have no API key."""
    return getattr(service(), "has_credentials", True)


def create_session(profile: UserProfile) -> tuple[str, Orchestrator]:
    cfg = settings()
    orchestrator = Orchestrator(
        profile,
        service(),
        store(),
        call_timeout=cfg.call_timeout,
        refine_passes=cfg.refine_passes,
        reverify_refinements=cfg.reverify_refinements,
    )
    session_id = uuid.uuid4().hex
    _sessions[session_id] = orchestrator
    logger.info("Session %s created for %s", session_id, profile.name)
    return session_id, orchestrator


def get_session(session_id: str) -> Orchestrator | None:
    return _sessions.get(session_id)


def delete_session(session_id: str) -> bool:
    """Drop a session. Its stored memory is kept."""
    return _sessions.pop(session_id, None) is not None
