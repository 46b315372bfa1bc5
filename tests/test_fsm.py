"""Tests for the pure interview transitions — no I/O, no collaborators."""

from urllib.parse import parse_qs, urlsplit

import pytest

from interviewer import fsm
from interviewer.models.interview import InterviewStatus
from interviewer.models.session import Phase, SessionState
from interviewer.telephony.script import Hangup, Pause, Record, Redirect, Say


def _session(**kwargs) -> SessionState:
    defaults = {"call_id": "CA1", "interview_id": "int-1", "topic": "backend engineering"}
    defaults.update(kwargs)
    return SessionState(**defaults)


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


class TestAsk:
    def test_first_question_is_greeted(self):
        session = _session()
        t = fsm.ask(session, "What do you build?")

        steps = t.script.steps
        assert isinstance(steps[0], Say)
        assert "backend engineering" in steps[0].text
        assert isinstance(steps[1], Pause)
        assert steps[2] == Say("What do you build?")
        assert isinstance(steps[3], Record)
        assert t.phase is Phase.QUESTION_ASKED
        assert session.questions == ["What do you build?"]

    def test_record_urls_carry_sequence_number(self):
        session = _session()
        fsm.ask(session, "Q1?")
        session.phase = Phase.AWAITING_QUESTION
        t = fsm.ask(session, "Q2?")

        record = t.script.steps[-1]
        assert record.action == "/handle-response?seq=1"
        assert record.transcribe_callback.startswith(fsm.TRANSCRIPTION_PATH)
        assert _query(record.transcribe_callback) == {"seq": "1"}

    def test_later_questions_skip_greeting(self):
        session = _session()
        fsm.ask(session, "Q1?")
        session.phase = Phase.AWAITING_QUESTION
        t = fsm.ask(session, "Q2?")
        assert t.script.spoken == ["Q2?"]

    def test_record_max_length(self):
        t = fsm.ask(_session(), "Q1?", max_length=45)
        assert t.script.steps[-1].max_length == 45

    def test_cannot_ask_on_finished_call(self):
        session = _session(phase=Phase.COMPLETED)
        with pytest.raises(ValueError):
            fsm.ask(session, "Q?")

    def test_repeat_voice_turn_reasks_pending_question(self):
        session = _session()
        assert fsm.needs_question(session)
        fsm.ask(session, "Q1?")
        assert not fsm.needs_question(session)

        t = fsm.reask(session)
        assert t.script.spoken == ["Q1?"]
        assert t.script.steps[-1].action == "/handle-response?seq=0"
        assert len(session.turns) == 1


class TestAdvance:
    def test_below_limit_redirects(self):
        session = _session()
        fsm.ask(session, "Q1?")
        t = fsm.advance(session, question_limit=5)

        assert t.phase is Phase.AWAITING_QUESTION
        assert session.current_question == 1
        assert isinstance(t.script.steps[0], Pause)
        assert t.script.steps[-1] == Redirect(fsm.VOICE_PATH)
        assert t.effects == []

    def test_duplicate_advance_counts_once(self):
        session = _session()
        fsm.ask(session, "Q1?")
        fsm.advance(session, question_limit=5)
        t = fsm.advance(session, question_limit=5)
        assert session.current_question == 1
        assert t.script.steps[-1] == Redirect(fsm.VOICE_PATH)

    def test_limit_closes_interview(self):
        session = _session()
        for i in range(3):
            fsm.ask(session, f"Q{i}?")
            t = fsm.advance(session, question_limit=3)

        assert t.phase is Phase.COMPLETED
        assert session.current_question == 3
        assert t.script.spoken == [fsm.CLOSING]
        assert isinstance(t.script.steps[-1], Hangup)
        assert t.effects == [
            fsm.FinalizeRecord("int-1", InterviewStatus.COMPLETED),
            fsm.EvictSession("CA1"),
        ]

    def test_counter_never_exceeds_questions(self):
        session = _session()
        for i in range(5):
            fsm.ask(session, f"Q{i}?")
            fsm.advance(session, question_limit=5)
            assert session.current_question <= len(session.questions)

    def test_advance_before_first_question_is_not_counted(self):
        session = _session()
        t = fsm.advance(session, question_limit=5)

        assert session.current_question == 0
        assert session.phase is Phase.GREETING
        assert t.script.steps[-1] == Redirect(fsm.VOICE_PATH)
        assert t.effects == []

        # The interview still needs the full five questions.
        for i in range(4):
            fsm.ask(session, f"Q{i}?")
            assert fsm.advance(session, question_limit=5).phase is Phase.AWAITING_QUESTION
        fsm.ask(session, "Q4?")
        assert fsm.advance(session, question_limit=5).phase is Phase.COMPLETED
        assert len(session.questions) == 5

    def test_advance_for_other_question_is_not_counted(self):
        session = _session()
        fsm.ask(session, "Q0?")
        fsm.advance(session, 5, seq=0)
        fsm.ask(session, "Q1?")

        # Stale recording callback for question 0.
        t = fsm.advance(session, 5, seq=0)
        assert session.current_question == 1
        assert session.phase is Phase.QUESTION_ASKED
        assert t.script.steps[-1] == Redirect(fsm.VOICE_PATH)

        fsm.advance(session, 5, seq=1)
        assert session.current_question == 2


class TestRecordAnswer:
    def test_answer_pairs_with_tagged_question(self):
        session = _session()
        fsm.ask(session, "Q0?")
        fsm.advance(session, 5)
        fsm.ask(session, "Q1?")

        # Transcript for Q0 arrives after Q1 was already asked.
        t = fsm.record_answer(session, "first answer", seq=0)
        assert session.turns[0].answer == "first answer"
        assert session.turns[1].answer is None
        append, broadcast = t.effects
        assert append == fsm.AppendResponse("int-1", 0, "Q0?", "first answer")
        assert broadcast.event == {
            "type": "INTERVIEW_UPDATE",
            "callId": "CA1",
            "interviewId": "int-1",
            "seq": 0,
            "question": "Q0?",
            "answer": "first answer",
        }

    def test_untagged_answer_goes_to_oldest_unanswered(self):
        session = _session()
        fsm.ask(session, "Q0?")
        fsm.advance(session, 5)
        fsm.ask(session, "Q1?")
        fsm.record_answer(session, "a0")
        fsm.record_answer(session, "a1")
        assert session.answers == ["a0", "a1"]

    def test_duplicate_transcription_ignored(self):
        session = _session()
        fsm.ask(session, "Q0?")
        assert fsm.record_answer(session, "a0", seq=0) is not None
        assert fsm.record_answer(session, "again", seq=0) is None
        assert session.answers == ["a0"]

    def test_no_question_to_pair(self):
        assert fsm.record_answer(_session(), "stray") is None

    def test_unknown_seq_falls_back(self):
        session = _session()
        fsm.ask(session, "Q0?")
        t = fsm.record_answer(session, "a0", seq=7)
        assert t.effects[0].seq == 0

    def test_exact_requires_asked_question(self):
        session = _session()
        assert fsm.record_answer(session, "stray", seq=0, exact=True) is None
        fsm.ask(session, "Q0?")
        assert fsm.record_answer(session, "a0", seq=3, exact=True) is None
        assert session.answers == []

    def test_retract_answer(self):
        session = _session()
        fsm.ask(session, "Q0?")
        fsm.record_answer(session, "a0", seq=0)
        fsm.retract_answer(session, 0)

        assert session.turns[0].answer is None
        assert fsm.record_answer(session, "a0", seq=0) is not None


class TestTermination:
    @pytest.mark.parametrize("status,outcome", [
        ("completed", InterviewStatus.COMPLETED),
        ("failed", InterviewStatus.FAILED),
        ("busy", InterviewStatus.FAILED),
        ("no-answer", InterviewStatus.FAILED),
        ("canceled", InterviewStatus.FAILED),
        ("initiated", None),
        ("ringing", None),
        ("answered", None),
        ("in-progress", None),
    ])
    def test_call_outcome(self, status, outcome):
        assert fsm.call_outcome(status) is outcome

    def test_terminate_from_any_phase(self):
        session = _session()
        fsm.ask(session, "Q0?")
        t = fsm.terminate(session, InterviewStatus.FAILED)
        assert t.phase is Phase.FAILED
        assert t.script is None
        assert t.effects == [
            fsm.FinalizeRecord("int-1", InterviewStatus.FAILED),
            fsm.EvictSession("CA1"),
        ]

    def test_fail_apologises_and_hangs_up(self):
        session = _session()
        t = fsm.fail(session)
        assert t.script.spoken == [fsm.APOLOGY]
        assert t.script.ends_call
        assert fsm.EvictSession("CA1") in t.effects
