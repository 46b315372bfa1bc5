"""QuestionFlowController — drives interview calls from provider webhooks.

One controller per process. It owns no state of its own: sessions live in
the SessionStore, records behind the InterviewRecordManager. Each webhook
handler runs under its call's lock, asks ``interviewer.fsm`` for the
transition, and applies the resulting effects in order.

Error policy:
  voice-turn / advance     always return a VoiceScript; failures become
                           apology + hangup (the provider needs a response)
  transcription / status   fire-and-forget; failures are logged and absorbed
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from interviewer import fsm
from interviewer.errors import RecordNotFoundError, SessionNotFoundError
from interviewer.models.interview import InterviewRecord, InterviewStatus
from interviewer.models.session import SessionState
from interviewer.notifications import NotificationHub
from interviewer.questions import QuestionGenerator, build_prompt
from interviewer.records import InterviewRecordManager
from interviewer.session_store import SessionStore
from interviewer.telephony.base import CallProvider
from interviewer.telephony.script import VoiceScript

log = logging.getLogger("interviewer.flow")


def redact_pii(value: str) -> str:
    """Mask PII for logging — show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


class QuestionFlowController:
    """The interview state machine, wired to its collaborators.

    Typical lifecycle::

        controller = QuestionFlowController(sessions, records, generator, provider, hub)
        interview_id, call_id = await controller.start_interview("+14155552671", "backend engineering")

        # provider webhooks, any number of times, in any order
        script = await controller.handle_voice_turn(call_id)
        script = await controller.handle_advance(call_id)
        await controller.handle_transcription(call_id, "I mostly write Python", seq=0)
        await controller.handle_call_status(call_id, "completed")
    """

    def __init__(
        self,
        sessions: SessionStore,
        records: InterviewRecordManager,
        generator: QuestionGenerator,
        provider: CallProvider,
        notifications: NotificationHub,
        question_limit: int = 5,
        record_max_length: int = 90,
    ) -> None:
        if question_limit < 1:
            raise ValueError("question_limit must be at least 1")
        self._sessions = sessions
        self._records = records
        self._generator = generator
        self._provider = provider
        self._notifications = notifications
        self._question_limit = question_limit
        self._record_max_length = record_max_length

    @property
    def question_limit(self) -> int:
        return self._question_limit

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def records(self) -> InterviewRecordManager:
        return self._records

    # ── Client request ────────────────────────────────────────

    async def start_interview(self, phone_number: str, topic: str) -> tuple[str, str]:
        """Create the record, place the call, and open the session.

        ``phone_number`` must already be validated. Returns
        ``(interview_id, call_id)``. If the call cannot be placed the record
        is marked failed and the provider's error propagates.
        """
        interview_id = await self._records.create_record(phone_number, topic)
        log.info("Starting interview %s: phone=%s", interview_id, redact_pii(phone_number))

        try:
            call_id = await self._provider.place_call(phone_number, interview_id)
        except Exception:
            try:
                await self._records.finalize(interview_id, InterviewStatus.FAILED)
            except Exception as e:
                log.error("Could not mark interview %s failed: %s", interview_id, e)
            raise

        async with self._sessions.locked(call_id):
            record = await self._records.attach_call(interview_id, call_id)
            # A status webhook may already have ended this call.
            if record.status.is_terminal:
                log.warning("Call %s ended before the interview started (%s)",
                            call_id, record.status.value)
            else:
                self._sessions.create(call_id, interview_id, topic)

        return interview_id, call_id

    # ── Synchronous-response webhooks ─────────────────────────

    async def handle_voice_turn(self, call_id: str, interview_id: Optional[str] = None) -> VoiceScript:
        """Provider asks what to say next: greet if new, then ask a question."""
        async with self._sessions.locked(call_id):
            try:
                return await self._voice_turn(call_id, interview_id)
            except Exception as e:
                log.error("Error in voice turn for call %s: %s", call_id, e)
                return await self._fail_call(call_id)

    async def _voice_turn(self, call_id: str, interview_id: Optional[str]) -> VoiceScript:
        session = self._sessions.get(call_id)
        if session is None:
            record = await self._load_record(call_id, interview_id)
            if record.status.is_terminal:
                log.warning("Voice turn for finished interview %s (call %s)", record.id, call_id)
                return fsm.apology_script()
            session = self._sessions.create(call_id, record.id, record.topic)

        if fsm.needs_question(session):
            prompt = build_prompt(session.topic, session.turns)
            question = await self._generator.generate(prompt)
            transition = fsm.ask(session, question, self._record_max_length)
            log.info("Call %s question %d: %s", call_id, session.turns[-1].seq + 1, question)
        else:
            transition = fsm.reask(session, self._record_max_length)
            log.info("Call %s: repeating question %d", call_id, session.turns[-1].seq + 1)

        await self._apply(transition.effects)
        return transition.script

    async def handle_advance(self, call_id: str, seq: Optional[int] = None) -> VoiceScript:
        """Recording finished: close out or loop back for the next question.

        ``seq`` is the question tag from the record action URL; an advance
        for any question other than the pending one is not counted.
        """
        async with self._sessions.locked(call_id):
            try:
                session = self._require_session(call_id)
            except SessionNotFoundError as e:
                # Lost or duplicate callback; never recreate a session here.
                log.warning("Advance for call %s: %s", call_id, e.message)
                return fsm.apology_script(fsm.SESSION_LOST)

            try:
                transition = fsm.advance(session, self._question_limit, seq)
                log.info("Call %s advanced: %d/%d cycles (%s)", call_id,
                         session.current_question, self._question_limit, transition.phase.value)
                await self._apply(transition.effects)
                return transition.script
            except Exception as e:
                log.error("Error in advance for call %s: %s", call_id, e)
                return await self._fail_call(call_id, fsm.SESSION_LOST)

    # ── Fire-and-forget webhooks ──────────────────────────────

    async def handle_transcription(self, call_id: str, text: str, seq: Optional[int] = None) -> None:
        """Transcript ready: file the answer, persist it, notify observers."""
        try:
            async with self._sessions.locked(call_id):
                session = self._sessions.get(call_id)
                late = session is None
                if late:
                    session = self._retired_session(call_id, seq)
                    if session is None:
                        return

                transition = fsm.record_answer(session, text, seq, exact=late)
                if transition is None:
                    log.info("Call %s: transcription (seq=%s) has no open question, ignored",
                             call_id, seq)
                    return
                if late:
                    log.info("Late answer for question %d on interview %s",
                             seq + 1, session.interview_id)

                try:
                    await self._apply(transition.effects)
                except Exception:
                    for effect in transition.effects:
                        if isinstance(effect, fsm.AppendResponse):
                            fsm.retract_answer(session, effect.seq)
                    raise
        except Exception as e:
            log.error("Error in transcription callback for call %s: %s", call_id, e)

    def _retired_session(self, call_id: str, seq: Optional[int]) -> Optional[SessionState]:
        """Ended session a late transcript may still be filed against.

        Typically the last answer, transcribed after the closing hangup. Only
        a transcript tagged with a question asked on this call qualifies;
        anything else is a stray notification.
        """
        retired = self._sessions.retired(call_id)
        if retired is None or seq is None:
            log.warning("Transcription for call %s with no session ignored", call_id)
            return None
        return retired

    async def handle_call_status(
        self, call_id: str, call_status: str, interview_id: Optional[str] = None,
    ) -> None:
        """Provider-level status. Terminal statuses end the interview, always."""
        log.info("Call %s status updated to: %s", call_id, call_status)
        outcome = fsm.call_outcome(call_status)
        if outcome is None:
            return

        try:
            async with self._sessions.locked(call_id):
                session = self._sessions.get(call_id)
                if session is not None:
                    await self._apply(fsm.terminate(session, outcome).effects)
                    return

                record = await self._find_record(call_id, interview_id)
                if record is None:
                    log.warning("Call %s ended (%s) but no interview references it",
                                call_id, call_status)
                    return
                await self._records.finalize(record.id, outcome)
        except Exception as e:
            log.error("Error in call-status webhook for call %s: %s", call_id, e)
            self._sessions.remove(call_id)

    # ── Lifecycle ─────────────────────────────────────────────

    def shutdown(self) -> int:
        """Drop all live sessions. Returns how many were still open."""
        return self._sessions.drain()

    # ── Internal ──────────────────────────────────────────────

    def _require_session(self, call_id: str) -> SessionState:
        session = self._sessions.get(call_id)
        if session is None:
            raise SessionNotFoundError(call_id)
        return session

    async def _find_record(
        self, call_id: str, interview_id: Optional[str],
    ) -> Optional[InterviewRecord]:
        if interview_id:
            try:
                return await self._records.get(interview_id)
            except RecordNotFoundError:
                log.warning("Interview %s from callback URL not found, trying call %s",
                            interview_id, call_id)
        return await self._records.find_by_call(call_id)

    async def _load_record(self, call_id: str, interview_id: Optional[str]) -> InterviewRecord:
        record = await self._find_record(call_id, interview_id)
        if record is None:
            raise RecordNotFoundError(call_id, by="call_id")
        return record

    async def _fail_call(self, call_id: str, text: str = fsm.APOLOGY) -> VoiceScript:
        """Apology + hangup; end the session if there is one."""
        session = self._sessions.get(call_id)
        if session is None:
            return fsm.apology_script(text)

        transition = fsm.fail(session, text)
        try:
            await self._apply(transition.effects)
        except Exception as e:
            log.error("Could not mark interview %s failed: %s", session.interview_id, e)
        return transition.script

    async def _apply(self, effects: Sequence[fsm.Effect]) -> None:
        """Apply effects in order.

        Every effect is attempted even if an earlier one fails, so an
        EvictSession always runs; the first error is re-raised at the end.
        Broadcasts after a failure are skipped so observers never hear of an
        answer that was not stored.
        """
        error: Optional[Exception] = None
        for effect in effects:
            if error is not None and isinstance(effect, fsm.Broadcast):
                continue
            try:
                if isinstance(effect, fsm.AppendResponse):
                    await self._records.append_response(
                        effect.interview_id, effect.question, effect.answer, effect.seq,
                    )
                elif isinstance(effect, fsm.Broadcast):
                    self._notifications.broadcast(effect.event)
                elif isinstance(effect, fsm.FinalizeRecord):
                    await self._records.finalize(effect.interview_id, effect.outcome)
                elif isinstance(effect, fsm.EvictSession):
                    self._sessions.remove(effect.call_id)
                else:
                    raise TypeError(f"Unknown effect: {effect!r}")
            except Exception as e:
                log.error("%s failed: %s", type(effect).__name__, e)
                if error is None:
                    error = e
        if error is not None:
            raise error
