"""Durable local key-value storage.

A single JSON document on disk holding named values, the local
equivalent of the browser ``localStorage`` the mobile app writes to.
The progress snapshot lives under one key and is rewritten after every
mutation.

Key design choices:

* **Atomic writes** -- ``set_item()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Tolerant reads** -- a missing, unreadable or corrupt file reads as
  "no value"; the caller starts from an empty state instead of failing.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

PROGRESS_KEY = "pushup_challenge_data"


class LocalStorage:
    """Load and save JSON values under string keys in a single file.

    Args:
        path: Path of the JSON document (parent directories are created
            on first write).
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_item(self, key: str) -> Any | None:
        """Return the value stored under *key*, or ``None``."""
        return self._read_document().get(key)

    def _read_document(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as fh:
                document = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Ignoring unreadable storage file %s: %s", self._path, exc
            )
            return {}
        if not isinstance(document, dict):
            logger.warning(
                "Ignoring storage file %s with non-object root", self._path
            )
            return {}
        return document

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_item(self, key: str, value: Any) -> None:
        """Store *value* under *key* and persist the document atomically."""
        document = self._read_document()
        document[key] = value
        self._write_document(document)

    def remove_item(self, key: str) -> None:
        """Remove *key*.  No-op if not present."""
        document = self._read_document()
        if document.pop(key, None) is not None:
            self._write_document(document)

    def _write_document(self, document: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
