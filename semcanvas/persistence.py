"""
Named snapshot storage.

Saved models are kept as one JSON document (a list) under a fixed
namespace key of a small key-value backend:
- MemoryBackend keeps everything in a dict (tests, ephemeral sessions)
- JsonFileBackend stores one `<key>.json` file per key in a directory

A document that cannot be parsed is treated as an empty list. Backend
I/O failures surface as PersistenceError and are handled by the caller.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError

from .models import Graph, Link, Node

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "drsem_saved_models"


class PersistenceError(Exception):
    """Raised when the storage backend cannot be read or written."""


class KeyValueBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryBackend:
    """In-process key-value backend."""

    def __init__(self, data: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileBackend:
    """Key-value backend storing each key as `<directory>/<key>.json`."""

    def __init__(self, directory: str | Path):
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write then rename so a crash never leaves half a document
            tmp = path.with_suffix(".json.tmp")
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e


class SavedModel(BaseModel):
    """A named, timestamped copy of a graph."""
    id: str
    name: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    nodes: list[Node] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)

    @property
    def graph(self) -> Graph:
        return Graph(nodes=self.nodes, links=self.links)

    def summary(self) -> dict:
        """Listing entry without the graph payload."""
        return {
            "id": self.id,
            "name": self.name,
            "timestamp": self.timestamp.isoformat(),
            "nodes": len(self.nodes),
            "links": len(self.links),
        }


class SnapshotStore:
    """List, save, fetch and delete saved models under one namespace."""

    def __init__(self, backend: KeyValueBackend, namespace: str = DEFAULT_NAMESPACE):
        self._backend = backend
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def list(self) -> List[SavedModel]:
        """All saved models, oldest first. Corrupt data yields an empty list."""
        try:
            # Undecodable bytes on disk surface here as UnicodeDecodeError
            raw = self._backend.get(self._namespace)
            if not raw:
                return []
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("saved model list is not a JSON array")
            return [SavedModel.model_validate(item) for item in data]
        except (ValueError, ValidationError) as e:
            logger.error("Failed to parse saved models in %r: %s", self._namespace, e)
            return []

    def _write(self, models: List[SavedModel]):
        payload = json.dumps([m.model_dump(mode="json") for m in models], indent=2)
        self._backend.set(self._namespace, payload)

    def _next_id(self, existing: List[SavedModel]) -> str:
        taken = {m.id for m in existing}
        stamp = int(time.time() * 1000)
        while str(stamp) in taken:
            stamp += 1
        return str(stamp)

    def save(self, name: str, graph: Graph) -> str:
        """Append a copy of `graph` under `name` and return its id."""
        models = self.list()
        model = SavedModel(
            id=self._next_id(models),
            name=name,
            nodes=list(graph.nodes),
            links=list(graph.links),
        )
        models.append(model)
        self._write(models)
        logger.info("Saved model %r as %s", name, model.id)
        return model.id

    def get(self, model_id: str) -> Optional[SavedModel]:
        for model in self.list():
            if model.id == model_id:
                return model
        return None

    def delete(self, model_id: str) -> bool:
        """Remove a saved model. Returns False if there is no such id."""
        models = self.list()
        remaining = [m for m in models if m.id != model_id]
        if len(remaining) == len(models):
            return False
        self._write(remaining)
        logger.info("Deleted saved model %s", model_id)
        return True
