from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml

from app.logging_config import get_logger
from app.services.buckets import BucketConfigError, BucketTable

_RENTAL_DIR = Path(__file__).resolve().parents[1] / "knowledge" / "rental"
_QUESTIONNAIRE_PATH = _RENTAL_DIR / "QUESTIONNAIRE.yaml"

MATCH_SUBSTRING = "substring"
MATCH_BUCKET = "bucket"
MATCH_CODED = "coded"
_MATCH_KINDS = {MATCH_SUBSTRING, MATCH_BUCKET, MATCH_CODED}

logger = get_logger("questionnaire")


class QuestionnaireConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Question:
    field: str
    match: str
    prompt: str
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class Keywords:
    start: str
    reset: str
    stop: str
    proceed: str
    # first configured token, the one offered in quick replies
    wildcard: str
    wildcards: frozenset[str]

    def is_wildcard(self, value: Optional[str]) -> bool:
        return value is not None and value.strip() in self.wildcards


@dataclass(frozen=True)
class Questionnaire:
    questions: tuple[Question, ...]
    keywords: Keywords
    code_labels: dict[str, str]
    buckets: dict[str, BucketTable]
    texts: dict[str, str] = field(default_factory=dict)

    @property
    def fields(self) -> list[str]:
        return [question.field for question in self.questions]

    def question_for_stage(self, stage: int) -> Optional[Question]:
        """Question asked while the session sits at ``stage`` (1-based)."""
        if 1 <= stage <= len(self.questions):
            return self.questions[stage - 1]
        return None

    def text(self, key: str) -> str:
        return self.texts.get(key, "")

    def label_for_code(self, code: str) -> Optional[str]:
        """Display label for a listing code. Unknown codes have no label."""
        return self.code_labels.get(code)


@lru_cache(maxsize=4)
def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return data if isinstance(data, dict) else {}


def _build_keywords(raw: Any) -> Keywords:
    if not isinstance(raw, dict):
        raise QuestionnaireConfigError("keywords section is missing")
    try:
        wildcards = [str(item) for item in raw.get("wildcards") or []]
        if not wildcards:
            raise QuestionnaireConfigError("At least one wildcard token is required")
        return Keywords(
            start=str(raw["start"]),
            reset=str(raw["reset"]),
            stop=str(raw["stop"]),
            proceed=str(raw["continue"]),
            wildcard=wildcards[0],
            wildcards=frozenset(wildcards),
        )
    except KeyError as exc:
        raise QuestionnaireConfigError(f"Missing keyword: {exc}") from exc


def _build_buckets(raw: Any) -> dict[str, BucketTable]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise QuestionnaireConfigError("buckets section must be a mapping")
    tables = {}
    for field_name, items in raw.items():
        if not isinstance(items, list):
            raise QuestionnaireConfigError(f"buckets for {field_name!r} must be a list")
        try:
            tables[str(field_name)] = BucketTable.from_config(items)
        except BucketConfigError as exc:
            raise QuestionnaireConfigError(f"Invalid buckets for {field_name!r}: {exc}") from exc
    return tables


def _build_questions(raw: Any, buckets: dict[str, BucketTable], wildcard: str) -> tuple[Question, ...]:
    if not isinstance(raw, list) or not raw:
        raise QuestionnaireConfigError("questions section must be a non-empty list")

    questions = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, dict):
            raise QuestionnaireConfigError(f"Invalid question entry: {item!r}")
        field_name = str(item.get("field") or "").strip()
        match = str(item.get("match") or MATCH_SUBSTRING)
        prompt = str(item.get("prompt") or "")
        if not field_name or not prompt:
            raise QuestionnaireConfigError(f"Question needs a field and a prompt: {item!r}")
        if field_name in seen:
            raise QuestionnaireConfigError(f"Duplicate question field: {field_name}")
        if match not in _MATCH_KINDS:
            raise QuestionnaireConfigError(f"Unknown match kind {match!r} for {field_name}")
        if match == MATCH_BUCKET and field_name not in buckets:
            raise QuestionnaireConfigError(f"No buckets configured for {field_name}")

        options = [str(option) for option in item.get("options") or []]
        if not options and match == MATCH_BUCKET:
            options = buckets[field_name].labels + [wildcard]

        seen.add(field_name)
        questions.append(Question(field=field_name, match=match, prompt=prompt, options=tuple(options)))
    return tuple(questions)


def build_questionnaire(data: dict) -> Questionnaire:
    """Build and validate a questionnaire from its parsed YAML mapping."""
    section = data.get("rental_questionnaire") if isinstance(data, dict) else None
    if not isinstance(section, dict):
        raise QuestionnaireConfigError("rental_questionnaire section is missing")

    keywords = _build_keywords(section.get("keywords"))
    buckets = _build_buckets(section.get("buckets"))
    questions = _build_questions(section.get("questions"), buckets, keywords.wildcard)

    code_labels = section.get("code_labels") or {}
    if not isinstance(code_labels, dict):
        raise QuestionnaireConfigError("code_labels section must be a mapping")
    texts = section.get("texts") or {}
    if not isinstance(texts, dict):
        raise QuestionnaireConfigError("texts section must be a mapping")

    return Questionnaire(
        questions=questions,
        keywords=keywords,
        code_labels={str(code): str(label) for code, label in code_labels.items()},
        buckets=buckets,
        texts={str(key): str(value) for key, value in texts.items()},
    )


@lru_cache(maxsize=2)
def get_questionnaire(path: Path = _QUESTIONNAIRE_PATH) -> Questionnaire:
    questionnaire = build_questionnaire(_load_yaml(path))
    logger.info(
        "Questionnaire loaded",
        extra={"context": {"path": str(path), "questions": len(questionnaire.questions)}},
    )
    return questionnaire
