"""Interview call-progression state machine — pure transitions.

Phases per call::

    GREETING ──ask──▶ QUESTION_ASKED ──advance──▶ AWAITING_QUESTION ──ask──▶ QUESTION_ASKED ...
                                         │
                                         └─(limit reached)──▶ COMPLETED
    any phase ──call failed / error──▶ FAILED

Each function takes the borrowed SessionState plus one event, updates the
session in place, and returns a Transition: the next phase, the VoiceScript
to answer the provider with (if the trigger expects one), and the side
effects the controller must apply. Nothing here does I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union
from urllib.parse import urlencode

from interviewer.models.interview import InterviewStatus
from interviewer.models.session import Phase, QuestionTurn, SessionState
from interviewer.telephony.script import VoiceScript

# Webhook paths (relative, resolved by the provider against the request URL)
VOICE_PATH = "/voice"
ADVANCE_PATH = "/handle-response"
TRANSCRIPTION_PATH = "/transcription-callback"
STATUS_PATH = "/call-status"

GREETING = "Hello! I'll be conducting your interview about {topic}. Let's begin."
CLOSING = "Thank you for completing the interview. We appreciate your time."
APOLOGY = "I apologize, but we encountered an unexpected error. Please try again later."
SESSION_LOST = "I apologize, but we encountered an error. The interview will now end."

UPDATE_EVENT = "INTERVIEW_UPDATE"

# Provider call statuses that end the call, and the record outcome for each
TERMINAL_CALL_STATUSES: dict[str, InterviewStatus] = {
    "completed": InterviewStatus.COMPLETED,
    "failed": InterviewStatus.FAILED,
    "busy": InterviewStatus.FAILED,
    "no-answer": InterviewStatus.FAILED,
    "canceled": InterviewStatus.FAILED,
}


# ── Effects ──────────────────────────────────────────────────────

@dataclass
class AppendResponse:
    interview_id: str
    seq: int
    question: str
    answer: str


@dataclass
class Broadcast:
    event: dict[str, Any]


@dataclass
class FinalizeRecord:
    interview_id: str
    outcome: InterviewStatus


@dataclass
class EvictSession:
    call_id: str


Effect = Union[AppendResponse, Broadcast, FinalizeRecord, EvictSession]


@dataclass
class Transition:
    phase: Phase
    script: Optional[VoiceScript] = None
    effects: list[Effect] = field(default_factory=list)


# ── Helpers ──────────────────────────────────────────────────────

def transcription_callback(turn: QuestionTurn) -> str:
    """Transcription URL tagged with the question's sequence number.

    Only the number travels; the question text is always taken from the
    call's own session state.
    """
    return f"{TRANSCRIPTION_PATH}?{urlencode({'seq': turn.seq})}"


def advance_action(turn: QuestionTurn) -> str:
    return f"{ADVANCE_PATH}?{urlencode({'seq': turn.seq})}"


def pending_turn(session: SessionState) -> Optional[QuestionTurn]:
    """The asked question whose recording has not been advanced past, if any."""
    if session.phase is not Phase.QUESTION_ASKED or not session.turns:
        return None
    if session.current_question >= len(session.turns):
        return None
    return session.turns[-1]


def update_event(session: SessionState, turn: QuestionTurn) -> dict[str, Any]:
    return {
        "type": UPDATE_EVENT,
        "callId": session.call_id,
        "interviewId": session.interview_id,
        "seq": turn.seq,
        "question": turn.question,
        "answer": turn.answer,
    }


def needs_question(session: SessionState) -> bool:
    """False when the current question was asked but not yet advanced past.

    A repeated voice-turn in that phase re-asks the pending question rather
    than generating a new one.
    """
    return not (session.phase is Phase.QUESTION_ASKED and session.turns)


def call_outcome(call_status: str) -> Optional[InterviewStatus]:
    """Record outcome for a provider call status, or None if not terminal."""
    return TERMINAL_CALL_STATUSES.get(call_status.strip().lower())


def apology_script(text: str = APOLOGY) -> VoiceScript:
    return VoiceScript().say(text).hangup()


# ── Transitions ──────────────────────────────────────────────────

def ask(session: SessionState, question: str, max_length: int = 90) -> Transition:
    """Voice-turn: speak ``question`` and record the answer.

    The first question on a call is preceded by the greeting.
    """
    if session.phase.is_terminal:
        raise ValueError(f"Call {session.call_id} already {session.phase.value}")

    script = VoiceScript()
    if not session.turns:
        script.say(GREETING.format(topic=session.topic)).pause(1)

    turn = QuestionTurn(seq=session.next_seq, question=question)
    session.turns.append(turn)
    session.phase = Phase.QUESTION_ASKED

    script.say(question)
    script.record(
        action=advance_action(turn),
        transcribe_callback=transcription_callback(turn),
        max_length=max_length,
    )
    return Transition(Phase.QUESTION_ASKED, script)


def reask(session: SessionState, max_length: int = 90) -> Transition:
    """Voice-turn repeated before the caller's answer was recorded."""
    turn = session.turns[-1]
    script = VoiceScript().say(turn.question).record(
        action=advance_action(turn),
        transcribe_callback=transcription_callback(turn),
        max_length=max_length,
    )
    return Transition(Phase.QUESTION_ASKED, script)


def advance(session: SessionState, question_limit: int, seq: Optional[int] = None) -> Transition:
    """Recording finished: close the interview or go back for another question.

    Only the recording of the pending question counts as a cycle. With no
    question pending (nothing asked yet, or this cycle already counted) or a
    ``seq`` naming another question, the call is sent back to the voice
    turn and the counter is left alone.
    """
    turn = pending_turn(session)
    if turn is None or (seq is not None and seq != turn.seq):
        return Transition(session.phase, VoiceScript().pause(1).redirect(VOICE_PATH))

    session.phase = Phase.EVALUATING
    completed = session.current_question + 1

    if completed >= question_limit:
        session.current_question = completed
        session.phase = Phase.COMPLETED
        return Transition(
            Phase.COMPLETED,
            VoiceScript().say(CLOSING).hangup(),
            [
                FinalizeRecord(session.interview_id, InterviewStatus.COMPLETED),
                EvictSession(session.call_id),
            ],
        )

    session.current_question = completed
    session.phase = Phase.AWAITING_QUESTION
    return Transition(Phase.AWAITING_QUESTION, VoiceScript().pause(1).redirect(VOICE_PATH))


def record_answer(
    session: SessionState, text: str, seq: Optional[int] = None, exact: bool = False,
) -> Optional[Transition]:
    """Transcription ready: pair ``text`` with its question.

    With ``seq`` the answer goes to that question; without it (or with an
    unknown seq) it goes to the oldest unanswered question, unless ``exact``
    is set. Returns None when there is nothing to pair with (duplicate or
    stray transcription).
    """
    turn = session.turn(seq) if seq is not None else None
    if turn is not None and turn.answered:
        return None
    if turn is None:
        if exact:
            return None
        turn = session.oldest_unanswered()
    if turn is None:
        return None

    turn.answer = text
    return Transition(
        session.phase,
        effects=[
            AppendResponse(session.interview_id, turn.seq, turn.question, text),
            Broadcast(update_event(session, turn)),
        ],
    )


def retract_answer(session: SessionState, seq: int) -> None:
    """Undo record_answer for ``seq`` after its AppendResponse failed.

    The question counts as unanswered again, so a redelivered transcript is
    paired instead of being dropped as a duplicate.
    """
    turn = session.turn(seq)
    if turn is not None:
        turn.answer = None


def terminate(session: SessionState, outcome: InterviewStatus) -> Transition:
    """The call ended at the provider, whatever phase the session was in."""
    session.phase = Phase.COMPLETED if outcome is InterviewStatus.COMPLETED else Phase.FAILED
    return Transition(
        session.phase,
        effects=[FinalizeRecord(session.interview_id, outcome), EvictSession(session.call_id)],
    )


def fail(session: SessionState, text: str = APOLOGY) -> Transition:
    """Unrecoverable error while answering the provider: apologise and hang up."""
    session.phase = Phase.FAILED
    return Transition(
        Phase.FAILED,
        apology_script(text),
        [
            FinalizeRecord(session.interview_id, InterviewStatus.FAILED),
            EvictSession(session.call_id),
        ],
    )
