# src/history.py
from typing import List, Optional

from schema import ScanResult
from src.repository import ScanRepository


def get_history(repository: ScanRepository) -> List[ScanResult]:
    """All stored scans, most recent first."""
    return sorted(repository.all(), key=lambda r: r.created_at, reverse=True)


def get_scan(repository: ScanRepository, scan_id: str) -> Optional[ScanResult]:
    return repository.get(scan_id)


def remove_scan(repository: ScanRepository, scan_id: str) -> bool:
    return repository.delete(scan_id)
