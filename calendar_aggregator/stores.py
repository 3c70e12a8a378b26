"""JSON-file readers for feed source configuration and cron job definitions.

Both stores are owned by other parts of the system; a missing or corrupt
document is treated as an empty collection rather than an error.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from .models import CronJob, FeedSource, SourceChanges

logger = logging.getLogger(__name__)

DEFAULT_JOBS_PATH = Path.home() / ".openclaw" / "cron" / "jobs.json"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _read_document(path: Path) -> dict[str, Any]:
    """Load a JSON object from ``path``; {} when missing or unreadable."""
    if not path.exists():
        logger.debug("Store file not found at %s", path)
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Could not read store file %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Store file %s does not contain a JSON object", path)
        return {}
    return data


def _load_records(records: Any, model: type[ModelT], path: Path) -> list[ModelT]:
    if not isinstance(records, list):
        return []

    loaded: list[ModelT] = []
    for i, record in enumerate(records):
        try:
            loaded.append(model.model_validate(record))
        except ValidationError as e:
            logger.warning("Skipping invalid %s record #%d in %s: %s", model.__name__, i, path, e)
    return loaded


class SourceStore:
    """Reads and writes ``{"sources": [...]}`` documents."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> list[FeedSource]:
        """Return all stored feed sources ([] when absent or corrupt)."""
        document = _read_document(self.path)
        return _load_records(document.get("sources"), FeedSource, self.path)

    def write(self, sources: list[FeedSource]) -> None:
        """Persist ``sources`` in the same document shape."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {"sources": [source.model_dump(mode="json") for source in sources]}
        self.path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        logger.debug("Wrote %d sources to %s", len(sources), self.path)

    def add(self, changes: SourceChanges) -> FeedSource:
        """Create a source with a fresh id and append it to the document."""
        source = FeedSource(id=str(uuid.uuid4()), **changes.model_dump(exclude_none=True))
        sources = self.read()
        sources.append(source)
        self.write(sources)
        logger.info("Added source %r (%s)", source.name, source.id)
        return source

    def update(self, source_id: str, changes: SourceChanges) -> Optional[FeedSource]:
        """Apply the set fields of ``changes``; None when the id is unknown."""
        sources = self.read()
        for i, source in enumerate(sources):
            if source.id != source_id:
                continue
            updated = FeedSource.model_validate(
                {**source.model_dump(), **changes.model_dump(exclude_none=True)}
            )
            sources[i] = updated
            self.write(sources)
            return updated
        return None

    def delete(self, source_id: str) -> bool:
        """Remove a source; False when the id is unknown."""
        sources = self.read()
        remaining = [source for source in sources if source.id != source_id]
        if len(remaining) == len(sources):
            return False
        self.write(remaining)
        logger.info("Deleted source %s", source_id)
        return True


class JobStore:
    """Reads ``{"jobs": [...]}`` cron job documents."""

    def __init__(self, path: Path = DEFAULT_JOBS_PATH):
        self.path = Path(path)

    def read(self) -> list[CronJob]:
        """Return all stored cron jobs ([] when absent or corrupt)."""
        document = _read_document(self.path)
        return _load_records(document.get("jobs"), CronJob, self.path)
