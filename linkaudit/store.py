"""JSON persistence for link indexes, one file per (domain, locale scope)."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import data_dir
from .errors import IndexNotFoundError
from .models import Index
from .urls import site_name

LOGGER = logging.getLogger(__name__)


def index_filename(domain: str, locale_filter: Optional[str] = None) -> str:
    """``www.example.com`` + ``de`` -> ``example_com_de.json``."""
    name = site_name(domain)
    if locale_filter:
        suffix = "-".join(part.strip().strip("/") for part in locale_filter.split(",") if part.strip())
        if suffix:
            name = f"{name}_{suffix}"
    return f"{name}.json"


def write_json(path: Path, data: Any) -> None:
    """Write ``data`` next to ``path`` first, then move it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp_path, path)


class IndexStore:
    """Directory of index JSON files (``<data dir>/indexes`` by default)."""

    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root) if root is not None else data_dir() / "indexes"

    def path_for(self, domain: str, locale_filter: Optional[str] = None) -> Path:
        return self.root / index_filename(domain, locale_filter)

    def _path_for_name(self, name: str) -> Path:
        filename = name if name.endswith(".json") else f"{name}.json"
        if not filename or Path(filename).name != filename:
            raise IndexNotFoundError(name)
        return self.root / filename

    def save(self, index: Index) -> Path:
        index.refresh_totals()
        path = self.path_for(index.metadata.domain, index.metadata.locale_filter)
        write_json(path, index.to_dict())
        LOGGER.info("Saved index to %s", path)
        return path

    def load(self, domain: str, locale_filter: Optional[str] = None) -> Index:
        return self.load_path(self.path_for(domain, locale_filter))

    def load_by_name(self, name: str) -> Index:
        """Load by file name (``example_com_de`` or ``example_com_de.json``)."""
        return self.load_path(self._path_for_name(name))

    def load_path(self, path: Path) -> Index:
        if not path.is_file():
            raise IndexNotFoundError(path.stem)
        with path.open(encoding="utf-8") as handle:
            return Index.from_dict(json.load(handle))

    def exists(self, domain: str, locale_filter: Optional[str] = None) -> bool:
        return self.path_for(domain, locale_filter).is_file()

    def list(self) -> List[Dict[str, Any]]:
        """Summaries of every readable index, newest first."""
        if not self.root.is_dir():
            return []
        entries = []
        for path in sorted(self.root.glob("*.json")):
            try:
                with path.open(encoding="utf-8") as handle:
                    metadata = (json.load(handle) or {}).get("metadata") or {}
            except (OSError, ValueError) as exc:
                LOGGER.warning("Skipping unreadable index %s: %s", path, exc)
                continue
            stat = path.stat()
            entries.append(
                {
                    "name": path.stem,
                    "domain": metadata.get("domain") or path.stem.replace("_", "."),
                    "localeFilter": metadata.get("localeFilter"),
                    "totalPages": metadata.get("totalPages") or 0,
                    "totalLinks": metadata.get("totalLinks") or 0,
                    "createdAt": metadata.get("createdAt") or metadata.get("crawledAt"),
                    "fileSize": stat.st_size,
                    "lastModified": datetime.fromtimestamp(
                        stat.st_mtime, tz=timezone.utc
                    ).isoformat(),
                }
            )
        entries.sort(key=lambda entry: entry["lastModified"], reverse=True)
        return entries

    def delete(self, name: str) -> None:
        path = self._path_for_name(name)
        if not path.is_file():
            raise IndexNotFoundError(name)
        path.unlink()
        LOGGER.info("Deleted index %s", path)
