from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.services.dataset_service import Record
from app.services.match_engine import matches
from app.services.questionnaire import Questionnaire
from app.services.session_store import Session


@dataclass(frozen=True)
class ScanResult:
    index: int
    record: Record


def scan_next(session: Session, questionnaire: Optional[Questionnaire] = None) -> Optional[ScanResult]:
    """Return the next record matching the session's criteria and move the cursor past it.

    Scanning resumes at ``session.cursor``. When nothing else matches the cursor
    is parked at the end of the dataset and None is returned.
    """
    dataset = session.dataset or ()
    start = min(max(session.cursor, 0), len(dataset))
    for index in range(start, len(dataset)):
        record = dataset[index]
        if matches(record, session.criteria, questionnaire):
            session.cursor = index + 1
            return ScanResult(index=index, record=record)
    session.cursor = len(dataset)
    return None


def count_matches(session: Session, questionnaire: Optional[Questionnaire] = None) -> int:
    """Total matches in the session's dataset regardless of the cursor."""
    return sum(1 for record in session.dataset or () if matches(record, session.criteria, questionnaire))
