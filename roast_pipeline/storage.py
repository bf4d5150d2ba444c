"""
Storage collaborator interface and an in-memory implementation.

Stores are created by the caller and passed into the pipeline and backfill
service; nothing in the package holds a process-wide client.
"""

import copy
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from roast_pipeline.errors import StorageError
from roast_pipeline.models import DERIVED_PROFILE_FIELDS, Decomposition

logger = logging.getLogger(__name__)

CHILD_KINDS = ("log_rows", "event_rows", "phase_rows", "device_rows")

# A profile with any of these still null is a backfill candidate
BACKFILL_NULL_FIELDS = ("dry_end_time", "fc_start_time", "development_percent")


@dataclass
class StoredSeries:
    """Everything the backfill needs to rebuild one roast's derived fields."""

    profile: Dict[str, Any]
    log_rows: List[Dict[str, Any]] = field(default_factory=list)
    event_rows: List[Dict[str, Any]] = field(default_factory=list)


class RoastStore(ABC):
    """Persistence operations the pipeline depends on."""

    @abstractmethod
    def create_profile(self, profile_row: Dict[str, Any], user: Optional[str] = None) -> int:
        """Insert a roast profile and return its roast id."""

    @abstractmethod
    def update_profile(self, roast_id: int, fields: Dict[str, Any]) -> None:
        """Update summary fields of an existing profile."""

    @abstractmethod
    def get_profile(self, roast_id: int) -> Dict[str, Any]:
        """Return the profile row as a dict."""

    @abstractmethod
    def insert_log_rows(self, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        """Bulk insert temperature log rows."""

    @abstractmethod
    def insert_event_rows(self, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        """Bulk insert event rows."""

    @abstractmethod
    def insert_phase_rows(self, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        """Bulk insert phase rows."""

    @abstractmethod
    def insert_device_rows(self, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        """Bulk insert auxiliary device rows."""

    @abstractmethod
    def load_raw_series(self, roast_id: int) -> StoredSeries:
        """Profile plus its log rows (time ordered) and event rows."""

    @abstractmethod
    def find_backfill_candidates(self) -> List[int]:
        """Roast ids with null derived fields that still have log rows."""

    @abstractmethod
    def clear_roast_data(self, roast_id: int) -> None:
        """Wipe child rows and derived fields, keeping the summary."""

    @abstractmethod
    def delete_profile(self, roast_id: int) -> None:
        """Delete a profile and all of its child rows."""

    def close(self) -> None:
        """Release any held resources."""

    def save_import(
        self,
        decomposition: Decomposition,
        roast_id: Optional[int] = None,
        user: Optional[str] = None,
    ) -> int:
        """
        Persist a decomposed import.

        Creates a new profile, or for a re-import clears the existing
        profile's data and overwrites its summary.

        Returns:
            Roast id the rows were stored under
        """
        if roast_id is None:
            roast_id = self.create_profile(decomposition.profile_row, user=user)
        else:
            self.clear_roast_data(roast_id)
            self.update_profile(roast_id, decomposition.profile_row)

        self.insert_log_rows(roast_id, decomposition.log_rows)
        self.insert_event_rows(roast_id, decomposition.event_rows)
        self.insert_phase_rows(roast_id, decomposition.phase_rows)
        self.insert_device_rows(roast_id, decomposition.device_rows)
        logger.info("Stored roast %s: %s", roast_id, decomposition.row_counts())
        return roast_id


class InMemoryRoastStore(RoastStore):
    """Dictionary-backed store for tests and one-off CLI runs."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.profiles: Dict[int, Dict[str, Any]] = {}
        self.children: Dict[str, Dict[int, List[Dict[str, Any]]]] = {kind: {} for kind in CHILD_KINDS}

    def _require(self, roast_id: int) -> Dict[str, Any]:
        try:
            return self.profiles[roast_id]
        except KeyError:
            raise StorageError(f"Roast profile {roast_id} not found") from None

    def _insert(self, kind: str, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        self._require(roast_id)
        stored = self.children[kind].setdefault(roast_id, [])
        stored.extend(dict(row, roast_id=roast_id) for row in rows)
        return len(rows)

    def create_profile(self, profile_row: Dict[str, Any], user: Optional[str] = None) -> int:
        roast_id = next(self._ids)
        self.profiles[roast_id] = dict(copy.deepcopy(profile_row), roast_id=roast_id, user=user)
        return roast_id

    def update_profile(self, roast_id: int, fields: Dict[str, Any]) -> None:
        self._require(roast_id).update(copy.deepcopy(fields))

    def get_profile(self, roast_id: int) -> Dict[str, Any]:
        return copy.deepcopy(self._require(roast_id))

    def insert_log_rows(self, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        return self._insert("log_rows", roast_id, rows)

    def insert_event_rows(self, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        return self._insert("event_rows", roast_id, rows)

    def insert_phase_rows(self, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        return self._insert("phase_rows", roast_id, rows)

    def insert_device_rows(self, roast_id: int, rows: List[Dict[str, Any]]) -> int:
        return self._insert("device_rows", roast_id, rows)

    def rows(self, kind: str, roast_id: int) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.children[kind].get(roast_id, []))

    def load_raw_series(self, roast_id: int) -> StoredSeries:
        return StoredSeries(
            profile=self.get_profile(roast_id),
            log_rows=sorted(self.rows("log_rows", roast_id), key=lambda r: r["time_seconds"]),
            event_rows=self.rows("event_rows", roast_id),
        )

    def find_backfill_candidates(self) -> List[int]:
        return [
            roast_id
            for roast_id, profile in sorted(self.profiles.items())
            if any(profile.get(f) is None for f in BACKFILL_NULL_FIELDS)
            and self.children["log_rows"].get(roast_id)
        ]

    def clear_roast_data(self, roast_id: int) -> None:
        profile = self._require(roast_id)
        for kind in CHILD_KINDS:
            self.children[kind].pop(roast_id, None)
        for name in DERIVED_PROFILE_FIELDS:
            profile[name] = None

    def delete_profile(self, roast_id: int) -> None:
        self._require(roast_id)
        for kind in CHILD_KINDS:
            self.children[kind].pop(roast_id, None)
        del self.profiles[roast_id]
