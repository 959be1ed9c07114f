# Overview: Client-side staging of scans before batch upload.

"""
Scan Batch Stager

A scanner works on one (zone, count) pair at a time. Codes read in that
context are kept in a local list under the key
``stagedScans_{zone_id}_{count_number}`` until the user uploads them.
Serial numbers are kept apart under ``stagedSerials_{zone_id}_{count_number}``.

Rules:
- A code can be staged only once per list (the scanner beeps otherwise).
- New scans go to the front of the list.
- A failed upload never loses the list. When the server cannot be
  reached the upload is deferred and the user retries later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from zonecount.time_utils import utcnow, to_utc_z
from .store import KeyValueStore


logger = logging.getLogger(__name__)

MIN_COUNT_NUMBER = 1
MAX_COUNT_NUMBER = 3


class DuplicateScanError(ValueError):
    """Code already staged in the working list."""

    def __init__(self, code: str):
        super().__init__(f"Code already scanned: {code}")
        self.code = code


class OfflineError(Exception):
    """The server could not be reached. Raised by uploaders."""


@dataclass(frozen=True)
class StagedScan:
    code: str
    scanned_at: str

    def to_dict(self) -> dict:
        return {"code": self.code, "scanned_at": self.scanned_at}

    @classmethod
    def from_dict(cls, data: dict) -> "StagedScan":
        return cls(code=str(data["code"]), scanned_at=data["scanned_at"])


@dataclass(frozen=True)
class SubmissionResult:
    uploaded: int
    deferred: bool


KIND_EAN = "ean"
KIND_SERIAL = "serial"

_KEY_PREFIXES = {
    KIND_EAN: "stagedScans",
    KIND_SERIAL: "stagedSerials",
}


def staging_key(zone_id: int, count_number: int, kind: str = KIND_EAN) -> str:
    """EAN and serial lists of the same zone and count never share a key."""
    if kind not in _KEY_PREFIXES:
        raise ValueError(f"kind must be one of: {', '.join(_KEY_PREFIXES)}")
    return f"{_KEY_PREFIXES[kind]}_{zone_id}_{count_number}"


class ScanStager:
    """
    Working list of staged scans for the selected zone and count.

    `alert` is called when a duplicate code is read (the CLI rings the
    terminal bell). `kind` ("ean" or "serial") selects which family of
    lists the stager works on.
    """

    def __init__(self, store: KeyValueStore, alert: Callable[[], None] | None = None, kind: str = KIND_EAN):
        self.store = store
        self.alert = alert
        if kind not in _KEY_PREFIXES:
            raise ValueError(f"kind must be one of: {', '.join(_KEY_PREFIXES)}")
        self.kind = kind
        self.zone_id: int | None = None
        self.count_number: int | None = None
        self._entries: list[StagedScan] = []

    @property
    def key(self) -> str | None:
        if self.zone_id is None or self.count_number is None:
            return None
        return staging_key(self.zone_id, self.count_number, self.kind)

    @property
    def entries(self) -> list[StagedScan]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def select(self, zone_id: int, count_number: int) -> list[StagedScan]:
        """Switch the working list. Lists of other keys are left untouched."""
        if isinstance(zone_id, bool) or not isinstance(zone_id, int):
            raise ValueError("zone_id must be an integer")
        if isinstance(count_number, bool) or not isinstance(count_number, int):
            raise ValueError("count_number must be an integer")
        if count_number < MIN_COUNT_NUMBER or count_number > MAX_COUNT_NUMBER:
            raise ValueError(f"count_number must be between {MIN_COUNT_NUMBER} and {MAX_COUNT_NUMBER}")

        self.zone_id = zone_id
        self.count_number = count_number
        stored = self.store.get(self.key) or []
        self._entries = [StagedScan.from_dict(item) for item in stored]
        return self.entries

    def _require_selection(self) -> str:
        key = self.key
        if key is None:
            raise ValueError("Select a zone and count first")
        return key

    def _persist(self) -> None:
        self.store.set(self._require_selection(), [e.to_dict() for e in self._entries])

    def contains(self, code: str) -> bool:
        return any(e.code == code for e in self._entries)

    def add(self, code, scanned_at: datetime | None = None) -> StagedScan:
        self._require_selection()
        code = str(code if code is not None else "").strip()
        if not code:
            raise ValueError("code is required")

        if self.contains(code):
            if self.alert is not None:
                self.alert()
            raise DuplicateScanError(code)

        entry = StagedScan(code=code, scanned_at=to_utc_z(scanned_at or utcnow()))
        self._entries.insert(0, entry)
        self._persist()
        return entry

    def remove(self, index: int | None = None, code: str | None = None) -> StagedScan:
        """Remove one entry by list position or by code."""
        self._require_selection()
        if index is None and code is None:
            raise ValueError("index or code is required")

        if index is not None:
            if index < 0 or index >= len(self._entries):
                raise IndexError(f"No staged scan at position {index}")
            removed = self._entries.pop(index)
        else:
            code = str(code).strip()
            for i, e in enumerate(self._entries):
                if e.code == code:
                    removed = self._entries.pop(i)
                    break
            else:
                raise KeyError(code)

        self._persist()
        return removed

    def clear(self) -> None:
        key = self._require_selection()
        self._entries = []
        self.store.clear(key)

    def as_batch(self) -> list[dict]:
        self._require_selection()
        return [
            {
                "code": e.code,
                "zone_id": self.zone_id,
                "count_number": self.count_number,
                "scanned_at": e.scanned_at,
            }
            for e in self._entries
        ]

    def submit(self, uploader: Callable[[list[dict]], object]) -> SubmissionResult:
        """
        Upload the working list with `uploader(batch)`.

        OfflineError defers the upload and keeps the list. Any other
        error propagates, the list is kept as well.
        """
        batch = self.as_batch()
        if not batch:
            raise ValueError("No scans to upload")

        try:
            uploader(batch)
        except OfflineError as e:
            logger.warning("upload deferred for %s (%d scans): %s", self.key, len(batch), e)
            return SubmissionResult(uploaded=0, deferred=True)

        self.clear()
        logger.info("Uploaded %d scans for %s", len(batch), self.key)
        return SubmissionResult(uploaded=len(batch), deferred=False)
