from __future__ import annotations

from pathlib import Path
from typing import Protocol

import structlog
from pydantic import ValidationError as SchemaValidationError

from storefront.config import Settings, settings
from storefront.schemas.session import SessionSnapshot


logger = structlog.get_logger(__name__)


class SessionStorage(Protocol):
    """Durability policy for the session snapshot.

    Implementations decide how long a saved session survives: for the life of
    the client instance (per-tab), across restarts (file), or not at all.
    """

    @property
    def name(self) -> str: ...

    def load(self) -> SessionSnapshot | None: ...

    def save(self, snapshot: SessionSnapshot) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStorage:
    """Per-instance storage: the session ends when the client is discarded."""

    def __init__(self) -> None:
        self._snapshot: SessionSnapshot | None = None

    @property
    def name(self) -> str:
        return 'memory'

    def load(self) -> SessionSnapshot | None:
        return self._snapshot

    def save(self, snapshot: SessionSnapshot) -> None:
        self._snapshot = snapshot

    def clear(self) -> None:
        self._snapshot = None


class FileSessionStorage:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    @property
    def name(self) -> str:
        return 'file'

    def load(self) -> SessionSnapshot | None:
        if not self.path.exists():
            return None
        try:
            return SessionSnapshot.model_validate_json(self.path.read_text(encoding='utf-8'))
        except (OSError, SchemaValidationError) as exc:
            logger.warning('Discarding unreadable session file', path=str(self.path), exc=exc)
            return None

    def save(self, snapshot: SessionSnapshot) -> None:
        self.path.write_text(snapshot.model_dump_json(), encoding='utf-8')

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class NullSessionStorage:
    @property
    def name(self) -> str:
        return 'none'

    def load(self) -> SessionSnapshot | None:
        return None

    def save(self, snapshot: SessionSnapshot) -> None:
        return None

    def clear(self) -> None:
        return None


def build_session_storage(config: Settings = settings) -> SessionStorage:
    kind = config.SESSION_STORAGE.lower()
    if kind == 'file':
        return FileSessionStorage(config.SESSION_STORAGE_PATH)
    if kind == 'none':
        return NullSessionStorage()
    return MemorySessionStorage()
