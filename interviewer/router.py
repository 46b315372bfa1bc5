"""WebhookRouter — turns inbound requests into controller calls.

Holds no state. Client socket messages are validated here before any side
effect; provider callbacks are dispatched by call id and their VoiceScripts
rendered to the provider's markup.

Client protocol (JSON over the /ws socket)::

    → {"type": "START_INTERVIEW", "phoneNumber": "+14155552671", "topic": "backend engineering"}
    ← {"type": "INTERVIEW_STARTED", "interviewId": "...", "callId": "CA..."}
    ← {"type": "ERROR", "message": "Invalid phone number format"}
    ← {"type": "INTERVIEW_UPDATE", "callId": "CA...", "question": "...", "answer": "..."}
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Union

from interviewer import fsm
from interviewer.errors import InterviewError, MalformedClientMessage, ValidationError
from interviewer.flow import QuestionFlowController
from interviewer.telephony.base import CallProvider

log = logging.getLogger("interviewer.router")

# E.164-like: optional +, first digit 1-9, 2-15 digits total
PHONE_RE = re.compile(r"^\+?[1-9]\d{1,14}$")

START_INTERVIEW = "START_INTERVIEW"
INTERVIEW_STARTED = "INTERVIEW_STARTED"
ERROR = "ERROR"


def validate_phone_number(value: Any) -> str:
    if not isinstance(value, str) or not PHONE_RE.fullmatch(value.strip()):
        raise ValidationError("Invalid phone number format")
    return value.strip()


def parse_client_message(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, str):
        raise MalformedClientMessage("Binary frames are not supported")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedClientMessage(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedClientMessage("Message must be a JSON object")
    if not data.get("type"):
        raise MalformedClientMessage("Message has no type")
    return data


def parse_seq(value: Optional[str]) -> Optional[int]:
    """Question sequence number from a callback query string, if usable."""
    if value is None:
        return None
    try:
        seq = int(value)
    except ValueError:
        return None
    return seq if seq >= 0 else None


def error_message(message: str) -> dict[str, Any]:
    return {"type": ERROR, "message": message}


class WebhookRouter:
    def __init__(self, controller: QuestionFlowController, provider: CallProvider) -> None:
        self._controller = controller
        self._provider = provider

    @property
    def media_type(self) -> str:
        return self._provider.media_type

    # ── Client socket ─────────────────────────────────────────

    async def handle_client_message(self, raw: Union[str, bytes, None]) -> dict[str, Any]:
        """Process one client frame and return the reply for that client."""
        try:
            data = parse_client_message(raw)
            log.info("Received client message: type=%s", data.get("type"))

            if data["type"] != START_INTERVIEW:
                raise MalformedClientMessage(f"Unknown message type: {data['type']}")

            phone_number = validate_phone_number(data.get("phoneNumber"))
            topic = data.get("topic")
            if not isinstance(topic, str) or not topic.strip():
                raise ValidationError("Topic is required")

            interview_id, call_id = await self._controller.start_interview(
                phone_number, topic.strip(),
            )
            return {"type": INTERVIEW_STARTED, "interviewId": interview_id, "callId": call_id}

        except InterviewError as e:
            log.warning("Client request rejected: %s", e.message)
            return error_message(e.message)
        except Exception as e:
            log.error("Error in client message handling: %s", e, exc_info=True)
            return error_message("Failed to start interview")

    # ── Provider callbacks ────────────────────────────────────

    async def voice(self, call_id: str, interview_id: Optional[str] = None) -> str:
        if not call_id:
            log.warning("Voice webhook without CallSid")
            return self._provider.render(fsm.apology_script())
        script = await self._controller.handle_voice_turn(call_id, interview_id or None)
        return self._provider.render(script)

    async def advance(self, call_id: str, seq: Optional[str] = None) -> str:
        if not call_id:
            log.warning("Advance webhook without CallSid")
            return self._provider.render(fsm.apology_script(fsm.SESSION_LOST))
        script = await self._controller.handle_advance(call_id, parse_seq(seq))
        return self._provider.render(script)

    async def transcription(
        self,
        call_id: str,
        text: Optional[str],
        status: Optional[str] = None,
        seq: Optional[str] = None,
    ) -> None:
        if not call_id:
            log.warning("Transcription webhook without CallSid")
            return
        if status and status != "completed":
            log.warning("Call %s: transcription %s, recording answer as empty", call_id, status)
        await self._controller.handle_transcription(
            call_id, (text or "").strip(), seq=parse_seq(seq),
        )

    async def call_status(
        self, call_id: str, status: Optional[str], interview_id: Optional[str] = None,
    ) -> None:
        if not call_id or not status:
            log.warning("Call-status webhook missing CallSid or CallStatus")
            return
        await self._controller.handle_call_status(call_id, status, interview_id or None)
