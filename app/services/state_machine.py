from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from app.schemas.message import OutboundMessage, TextMessage
from app.services.cursor_service import scan_next
from app.services.dataset_service import Record
from app.services.message_service import build_record_messages, continue_prompt, question_message
from app.services.questionnaire import Questionnaire, QuestionnaireConfigError, get_questionnaire
from app.services.session_store import QUESTION_STAGES, Session, Stage

LAST_QUESTION_STAGE = QUESTION_STAGES[-1]

# Reset and stop keywords may be used from any stage.
ALWAYS_ALLOWED = {Stage.IDLE, Stage.AREA}

VALID_TRANSITIONS = {
    Stage.IDLE: [Stage.IDLE, Stage.AREA],
    **{stage: [Stage(stage + 1)] for stage in QUESTION_STAGES if stage != LAST_QUESTION_STAGE},
    LAST_QUESTION_STAGE: [Stage.FETCHING],
    Stage.FETCHING: [Stage.FETCHING, Stage.BROWSING],
    Stage.BROWSING: [Stage.BROWSING, Stage.IDLE],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_stage: Stage, to_stage: Stage):
        self.from_stage = from_stage
        self.to_stage = to_stage
        super().__init__(f"Invalid transition: {from_stage.name} -> {to_stage.name}")


@dataclass
class Effect:
    """What the orchestrator has to do after a session changed."""

    messages: list[OutboundMessage] = field(default_factory=list)
    # set when the listing dataset has to be fetched for this search generation
    fetch_generation: Optional[int] = None
    # drop outbound messages still queued for the user
    cancel_pending: bool = False
    # a dataset arrived for a search that no longer exists
    discarded: bool = False

    @property
    def wants_fetch(self) -> bool:
        return self.fetch_generation is not None


def can_transition(from_stage: Stage, to_stage: Stage) -> bool:
    """Check if transition is valid."""
    if to_stage in ALWAYS_ALLOWED:
        return True
    return to_stage in VALID_TRANSITIONS.get(from_stage, [])


def transition(from_stage: Stage, to_stage: Stage) -> Stage:
    """Perform stage transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_stage, to_stage):
        raise InvalidTransitionError(from_stage, to_stage)
    return to_stage


def is_valid_stage(stage: int) -> bool:
    try:
        Stage(stage)
    except ValueError:
        return False
    return True


def _move(session: Session, to_stage: Stage) -> None:
    session.stage = transition(session.stage, to_stage)


def _check_layout(questionnaire: Questionnaire) -> None:
    if len(questionnaire.questions) != len(QUESTION_STAGES):
        raise QuestionnaireConfigError(
            f"Questionnaire has {len(questionnaire.questions)} questions, expected {len(QUESTION_STAGES)}"
        )


def _text(questionnaire: Questionnaire, key: str) -> TextMessage:
    return TextMessage(text=questionnaire.text(key))


def _first_question(session: Session, questionnaire: Questionnaire) -> list[OutboundMessage]:
    session.clear_search()
    _move(session, Stage.AREA)
    return [_text(questionnaire, "intro"), question_message(questionnaire.questions[0])]


def restart(session: Session, questionnaire: Questionnaire) -> Effect:
    """Start over from the first question, whatever the current stage."""
    return Effect(messages=_first_question(session, questionnaire), cancel_pending=True)


def stop(session: Session, questionnaire: Questionnaire) -> Effect:
    session.clear_search()
    _move(session, Stage.IDLE)
    return Effect(messages=[_text(questionnaire, "stopped")], cancel_pending=True)


def _finish(session: Session, questionnaire: Questionnaire, text_key: str) -> Effect:
    session.clear_search()
    _move(session, Stage.IDLE)
    return Effect(messages=[_text(questionnaire, text_key)])


def _answer(session: Session, text: str, questionnaire: Questionnaire) -> Effect:
    question = questionnaire.question_for_stage(session.stage)
    session.record_answer(question.field, text)

    if session.stage == LAST_QUESTION_STAGE:
        session.dataset = None
        session.cursor = 0
        _move(session, Stage.FETCHING)
        return Effect(messages=[_text(questionnaire, "search_started")], fetch_generation=session.generation)

    _move(session, Stage(session.stage + 1))
    return Effect(messages=[question_message(questionnaire.question_for_stage(session.stage))])


def show_next(session: Session, questionnaire: Questionnaire) -> Effect:
    """Reveal the next matching listing, or end the search when none is left."""
    result = scan_next(session, questionnaire)
    if result is None:
        return _finish(session, questionnaire, "no_more_results")

    _move(session, Stage.BROWSING)
    messages = build_record_messages(result.record, questionnaire)
    messages.append(continue_prompt(questionnaire))
    return Effect(messages=messages)


def advance(session: Session, text: str, questionnaire: Optional[Questionnaire] = None) -> Effect:
    """Apply one inbound text to the session and return the resulting effect."""
    questionnaire = questionnaire or get_questionnaire()
    _check_layout(questionnaire)
    keywords = questionnaire.keywords
    command = (text or "").strip()

    if command == keywords.reset:
        return restart(session, questionnaire)
    if command == keywords.stop:
        return stop(session, questionnaire)

    if session.stage == Stage.IDLE:
        if command == keywords.start:
            return Effect(messages=_first_question(session, questionnaire))
        return Effect(messages=[_text(questionnaire, "greeting")])

    if session.stage in QUESTION_STAGES:
        return _answer(session, text, questionnaire)

    if session.stage == Stage.FETCHING:
        return Effect(messages=[_text(questionnaire, "searching")])

    if command == keywords.proceed:
        return show_next(session, questionnaire)
    return _finish(session, questionnaire, "closing")


def on_dataset_ready(
    session: Session,
    records: tuple[Record, ...],
    generation: int,
    questionnaire: Optional[Questionnaire] = None,
) -> Effect:
    """Attach a fetched dataset to the search that requested it and show the first match."""
    questionnaire = questionnaire or get_questionnaire()
    if session.generation != generation or session.stage != Stage.FETCHING:
        return Effect(discarded=True)

    session.dataset = records
    session.cursor = 0
    _move(session, Stage.BROWSING)
    effect = show_next(session, questionnaire)
    effect.messages.insert(0, _text(questionnaire, "results_follow"))
    return effect
