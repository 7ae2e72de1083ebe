"""Named numeric buckets used for coarse range filtering.

A bucket table is an ordered list of half-open intervals ``[lower, upper)``
that must partition ``[0, inf)``: the first bucket starts at zero, each bucket
starts exactly where the previous one ends and only the last bucket may be
unbounded. Tables that overlap or leave a gap are rejected when built.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


class BucketConfigError(ValueError):
    pass


@dataclass(frozen=True)
class NumericBucket:
    label: str
    lower: float
    upper: Optional[float] = None

    def contains(self, value: float) -> bool:
        if value < self.lower:
            return False
        return self.upper is None or value < self.upper


def parse_amount(raw: object) -> Optional[float]:
    """Parse a listing amount such as ``"3500"`` or ``"3,500"``.

    Returns None for anything that is not a plain non-negative number.
    """
    if raw is None:
        return None
    text = str(raw).strip().replace(",", "")
    if not _NUMBER_RE.fullmatch(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return value


class BucketTable:
    def __init__(self, buckets: Iterable[NumericBucket]):
        self._buckets: tuple[NumericBucket, ...] = tuple(buckets)
        self._validate()
        self._by_label = {bucket.label: bucket for bucket in self._buckets}

    def _validate(self) -> None:
        if not self._buckets:
            raise BucketConfigError("Bucket table is empty")

        labels = [bucket.label for bucket in self._buckets]
        if len(set(labels)) != len(labels):
            raise BucketConfigError(f"Duplicate bucket labels: {labels}")

        if self._buckets[0].lower != 0:
            raise BucketConfigError(f"First bucket must start at 0, got {self._buckets[0].lower}")

        previous: Optional[NumericBucket] = None
        for bucket in self._buckets:
            if previous is not None:
                if previous.upper is None:
                    raise BucketConfigError(f"Unbounded bucket {previous.label!r} must be last")
                if bucket.lower < previous.upper:
                    raise BucketConfigError(f"Bucket {bucket.label!r} overlaps {previous.label!r}")
                if bucket.lower > previous.upper:
                    raise BucketConfigError(f"Gap between {previous.label!r} and {bucket.label!r}")
            if bucket.upper is not None and bucket.upper <= bucket.lower:
                raise BucketConfigError(f"Bucket {bucket.label!r} is empty")
            previous = bucket

    @classmethod
    def from_config(cls, items: list[dict]) -> "BucketTable":
        buckets = []
        for item in items:
            try:
                upper = item.get("upper")
                buckets.append(
                    NumericBucket(
                        label=str(item["label"]),
                        lower=float(item["lower"]),
                        upper=float(upper) if upper is not None else None,
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise BucketConfigError(f"Invalid bucket definition {item!r}: {exc}") from exc
        return cls(buckets)

    @property
    def labels(self) -> list[str]:
        return [bucket.label for bucket in self._buckets]

    def get(self, label: str) -> Optional[NumericBucket]:
        return self._by_label.get(label)

    def matches(self, label: str, raw: object) -> bool:
        """True when ``raw`` parses to a value inside the bucket named ``label``."""
        bucket = self.get(label)
        if bucket is None:
            return False
        value = parse_amount(raw)
        return value is not None and bucket.contains(value)
