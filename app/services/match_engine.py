from __future__ import annotations

from typing import Mapping, Optional

from app.services.dataset_service import Record
from app.services.questionnaire import (
    MATCH_BUCKET,
    MATCH_CODED,
    MATCH_SUBSTRING,
    Question,
    Questionnaire,
    get_questionnaire,
)


def field_matches(record: Record, question: Question, value: Optional[str], questionnaire: Questionnaire) -> bool:
    """Check a single criterion against a record. A missing criterion never matches.

    Substring fields use a literal containment test. User text is never
    compiled as a pattern, so characters such as ``(`` or ``*`` match themselves.
    Coded fields match only when the record code has a label.
    """
    if value is None:
        return False
    if questionnaire.keywords.is_wildcard(value):
        return True

    raw = record.get(question.field)
    if question.match == MATCH_SUBSTRING:
        return value in raw
    if question.match == MATCH_CODED:
        return questionnaire.label_for_code(raw) == value
    if question.match == MATCH_BUCKET:
        table = questionnaire.buckets.get(question.field)
        return table is not None and table.matches(value, raw)
    return False


def count_matching_fields(
    record: Record,
    criteria: Mapping[str, str],
    questionnaire: Optional[Questionnaire] = None,
) -> int:
    questionnaire = questionnaire or get_questionnaire()
    return sum(
        1
        for question in questionnaire.questions
        if field_matches(record, question, criteria.get(question.field), questionnaire)
    )


def matches(
    record: Record,
    criteria: Mapping[str, str],
    questionnaire: Optional[Questionnaire] = None,
) -> bool:
    """True when every criteria field is satisfied. There is no partial scoring."""
    questionnaire = questionnaire or get_questionnaire()
    return count_matching_fields(record, criteria, questionnaire) == len(questionnaire.questions)
