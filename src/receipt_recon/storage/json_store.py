"""
Best-effort JSON persistence of the working set.

Each working set is stored as ``<directory>/<key>.json``. When a payload is
larger than the configured quota, inline receipt previews are dropped and the
save is retried; financial fields are never dropped.
"""

from decimal import InvalidOperation
from pathlib import Path
from typing import Any, Optional
import json
import logging
import re

from ..models.working_set import LedgerWorkingSet
from ..utils.exceptions import ConsistencyConflict, StorageQuotaError

logger = logging.getLogger(__name__)

# Optional receipt fields that may be discarded under quota pressure
DROPPABLE_RECEIPT_FIELDS = ("image_data",)


class JsonWorkingSetStore:
    """Load and save working sets under caller-chosen keys."""

    def __init__(self, directory: Path, quota_bytes: Optional[int] = None):
        """
        Initialize the store.

        Args:
            directory: Folder holding one JSON file per key
            quota_bytes: Maximum payload size, or None for no limit
        """
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes

    def path_for(self, key: str) -> Path:
        safe_key = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe_key}.json"

    def load(self, key: str) -> LedgerWorkingSet:
        """
        Load a working set; a missing key yields an empty set.

        Raises:
            ConsistencyConflict: If the stored data is unreadable or breaks an invariant
        """
        path = self.path_for(key)
        if not path.exists():
            logger.info(f"No stored working set for '{key}', starting empty")
            return LedgerWorkingSet()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            working_set = LedgerWorkingSet.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ConsistencyConflict(f"Stored working set {path} is invalid: {e}") from e

        logger.info(
            f"Loaded '{key}': {len(working_set.transactions)} transactions, "
            f"{len(working_set.receipts)} receipts"
        )
        return working_set

    def save(self, key: str, working_set: LedgerWorkingSet) -> Path:
        """
        Write a working set, degrading oversized payloads.

        The working set itself is never modified.

        Raises:
            StorageQuotaError: If the payload exceeds the quota even after degrading
        """
        data = working_set.to_dict()
        payload = json.dumps(data, indent=2)

        if self._over_quota(payload):
            logger.warning(
                f"Working set '{key}' exceeds quota ({len(payload.encode())} bytes); "
                f"dropping receipt previews"
            )
            payload = json.dumps(self._degrade(data), indent=2)
            if self._over_quota(payload):
                raise StorageQuotaError(
                    f"Working set '{key}' needs {len(payload.encode())} bytes, "
                    f"quota is {self.quota_bytes}"
                )

        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
        tmp_path.replace(path)

        logger.debug(f"Saved working set '{key}' to {path}")
        return path

    def _over_quota(self, payload: str) -> bool:
        return self.quota_bytes is not None and len(payload.encode()) > self.quota_bytes

    @staticmethod
    def _degrade(data: dict[str, Any]) -> dict[str, Any]:
        receipts = []
        for receipt in data.get("receipts", []):
            stripped = dict(receipt)
            for name in DROPPABLE_RECEIPT_FIELDS:
                stripped[name] = None
            receipts.append(stripped)
        return {**data, "receipts": receipts}
