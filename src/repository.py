# src/repository.py
"""
Scan record persistence. The pipeline only calls save(); the rest serves
the history service and tooling.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from schema import ScanResult

logger = logging.getLogger(__name__)


class ScanRepository(ABC):
    @abstractmethod
    def save(self, result: ScanResult) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, scan_id: str) -> Optional[ScanResult]:
        raise NotImplementedError

    @abstractmethod
    def all(self) -> List[ScanResult]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, scan_id: str) -> bool:
        """Return True if a record was removed."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class InMemoryScanRepository(ScanRepository):
    def __init__(self):
        self._records: Dict[str, ScanResult] = {}
        self._lock = threading.Lock()

    def save(self, result: ScanResult) -> None:
        with self._lock:
            self._records[result.id] = result

    def get(self, scan_id: str) -> Optional[ScanResult]:
        return self._records.get(scan_id)

    def all(self) -> List[ScanResult]:
        with self._lock:
            return list(self._records.values())

    def delete(self, scan_id: str) -> bool:
        with self._lock:
            return self._records.pop(scan_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class JsonFileScanRepository(ScanRepository):
    """
    Stores every scan as one JSON array on disk. Each read-modify-write
    cycle holds the lock; writes go through a temp file and os.replace.
    """

    def __init__(self, path: str = "scan-db.json"):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> List[dict]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning("Unreadable scan database %s, treating as empty: %s", self.path, e)
            return []
        return data if isinstance(data, list) else []

    def _write(self, records: List[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".scan-db-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    @staticmethod
    def _load(record: dict) -> Optional[ScanResult]:
        try:
            return ScanResult.model_validate(record)
        except ValidationError:
            logger.warning("Skipping malformed scan record %s", record.get("id") if isinstance(record, dict) else None)
            return None

    def save(self, result: ScanResult) -> None:
        with self._lock:
            records = self._read()
            records.append(result.to_dict())
            self._write(records)

    def get(self, scan_id: str) -> Optional[ScanResult]:
        with self._lock:
            records = self._read()
        for record in records:
            if isinstance(record, dict) and record.get("id") == scan_id:
                return self._load(record)
        return None

    def all(self) -> List[ScanResult]:
        with self._lock:
            records = self._read()
        loaded = (self._load(r) for r in records)
        return [r for r in loaded if r is not None]

    def delete(self, scan_id: str) -> bool:
        with self._lock:
            records = self._read()
            kept = [r for r in records if not (isinstance(r, dict) and r.get("id") == scan_id)]
            if len(kept) == len(records):
                return False
            self._write(kept)
            return True

    def clear(self) -> None:
        with self._lock:
            self._write([])
