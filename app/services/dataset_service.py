"""Listing dataset retrieval and normalization.

The dataset is a single JSON document fetched from an external source. The
listing collection sits at a configurable dotted path inside it (an empty path
means the document itself is the list). Each item is normalized into a
``Record`` whose attributes are all strings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from typing import Any, Optional

import httpx

from app.logging_config import get_logger
from app.services.alert_service import alert_warning
from app.services.result import FETCH_ERROR, Result

logger = get_logger("dataset_service")


class DatasetFormatError(ValueError):
    """The fetched payload is not a JSON document with a listing collection."""


@dataclass(frozen=True)
class Record:
    id: str = ""
    title: str = ""
    area: str = ""
    address: str = ""
    type: str = ""
    rent: str = ""
    net: str = ""
    water: str = ""
    electricity: str = ""
    landlord: str = ""
    phone: str = ""
    url: str = ""
    description: str = ""

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "Record":
        return cls(**{f.name: _as_text(raw.get(f.name)) for f in fields(cls)})

    def get(self, name: str) -> str:
        return getattr(self, name, "")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "T" if value else "F"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _extract_collection(document: Any, records_path: str) -> Any:
    current = document
    for key in [part for part in (records_path or "").split(".") if part]:
        if not isinstance(current, dict) or key not in current:
            raise DatasetFormatError(f"Records path {records_path!r} not found (missing {key!r})")
        current = current[key]
    return current


def parse_records(raw: bytes | str, records_path: str = "") -> tuple[Record, ...]:
    """Parse a raw payload into an ordered tuple of records.

    Raises DatasetFormatError when the payload is not valid JSON or the
    collection is missing or not a list. Items that are not objects are skipped.
    """
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DatasetFormatError(f"Dataset is not valid JSON: {exc}") from exc

    collection = _extract_collection(document, records_path)
    if not isinstance(collection, list):
        raise DatasetFormatError(f"Records collection must be a list, got {type(collection).__name__}")

    records = []
    skipped = 0
    for item in collection:
        if not isinstance(item, dict):
            skipped += 1
            continue
        records.append(Record.from_raw(item))

    if skipped:
        logger.warning(
            "Skipped non-object dataset items",
            extra={"context": {"skipped": skipped, "total": len(collection)}},
        )
    return tuple(records)


class DatasetService:
    """Fetches the listing dataset. One attempt per call, no retry, no caching."""

    def __init__(
        self,
        url: str,
        *,
        records_path: str = "",
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.records_path = records_path
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def _get(self) -> bytes:
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            return response.content

    async def fetch(self) -> Result[tuple[Record, ...]]:
        try:
            body = await self._get()
        except httpx.HTTPError as e:
            logger.error(
                "Dataset fetch failed",
                extra={"context": {"url": self.url, "error": str(e)}},
            )
            await alert_warning("Dataset fetch failed", {"url": self.url, "error": str(e)})
            return Result.failure(str(e), FETCH_ERROR)

        records = parse_records(body, self.records_path)
        logger.info(
            "Dataset fetched",
            extra={"context": {"url": self.url, "records": len(records), "bytes": len(body)}},
        )
        return Result.success(records)
