"""JSON-file backed registry of registered groups.

A minimal host-side registry for running the relay standalone. Hosts with
their own persistence implement ``registered_groups`` / ``register_group``
themselves.

File layout::

    {"web:conv-abc": {"name": "Main", "folder": "web-conv-abc", ...}}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Union

from ..core.channel.models import RegisteredGroup

logger = logging.getLogger(__name__)


class JsonGroupRegistry:
    """In-memory jid -> RegisteredGroup map persisted to a JSON file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path).expanduser()
        self._groups: Dict[str, RegisteredGroup] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def registered_groups(self) -> Mapping[str, RegisteredGroup]:
        """Read-only snapshot of the registry."""
        return MappingProxyType(dict(self._groups))

    def register_group(self, jid: str, group: RegisteredGroup) -> None:
        self._groups[jid] = group
        self._save()
        logger.info("Registered group %s (folder=%s)", jid, group.folder)

    def __contains__(self, jid: object) -> bool:
        return jid in self._groups

    def __len__(self) -> int:
        return len(self._groups)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            if self._path.exists():
                raw = json.loads(self._path.read_text(encoding="utf-8"))
                if isinstance(raw, dict):
                    self._groups = {
                        str(jid): RegisteredGroup.from_dict(data)
                        for jid, data in raw.items()
                        if isinstance(data, dict)
                    }
        except Exception as exc:
            logger.warning("Failed to load registered groups from %s: %s", self._path, exc)

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            payload = {jid: group.to_dict() for jid, group in self._groups.items()}
            self._path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2) + "\n",
                encoding="utf-8",
            )
        except Exception as exc:
            logger.warning("Failed to save registered groups to %s: %s", self._path, exc)
