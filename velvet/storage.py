"""JSON file storage for long-horizon memory.

All durable state is stored in flat JSON files under a configurable base
directory. There is no database; reads and writes go through plain helper
methods that load and dump JSON. Profiles and drafts are session-only and
never written here.

Directory layout:

    {base}/
      config.json             ← locally stored settings (see velvet.config)
      memory/
        {slug}-{digest}.json  ← ordered list of MemoryEvent objects

Slug rules: name → Unicode normalize → strip non-ASCII → lowercase →
replace non-alnum runs with hyphen → strip leading/trailing hyphens.
The slug only keeps file names readable; the digest (first 12 hex chars of
the SHA-256 of the exact name) keeps each name in its own file.

Records are loaded verbatim. There is no migration or repair: a malformed
file raises (json.JSONDecodeError or pydantic.ValidationError) on load.
"""

from __future__ import annotations

import hashlib
import json
import re
import unicodedata
from pathlib import Path
from typing import Any

from velvet.models import MemoryEvent


def slugify(name: str) -> str:
    """Convert a user name to a filesystem-safe slug.

    "Ada Lovelace" → "ada-lovelace"
    """
    text = unicodedata.normalize("NFKD", name)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)  # strip apostrophes/quotes before hyphenation
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    return text or "anonymous"


class MemoryStore:
    def __init__(self, base_path: Path) -> None:
        self._memory_root = base_path / "memory"
        self._memory_root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _memory_file(self, user_name: str) -> Path:
        digest = hashlib.sha256(user_name.encode("utf-8")).hexdigest()[:12]
        return self._memory_root / f"{slugify(user_name)}-{digest}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    # ------------------------------------------------------------------
    # Memory events (append-only per user)
    # ------------------------------------------------------------------

    def load(self, user_name: str) -> list[MemoryEvent]:
        path = self._memory_file(user_name)
        if not path.exists():
            return []
        return [MemoryEvent.model_validate(e) for e in self._read_json(path)]

    def save(self, user_name: str, events: list[MemoryEvent]) -> None:
        """Replace the stored list with `events`."""
        self._write_json(
            self._memory_file(user_name),
            [e.model_dump(mode="json", by_alias=True) for e in events],
        )

    def clear(self, user_name: str) -> bool:
        """Delete the stored record. Returns False if there was none."""
        path = self._memory_file(user_name)
        if not path.exists():
            return False
        path.unlink()
        return True
