"""TwilioCallProvider — CallProvider backed by the Twilio REST API and TwiML.

Outbound flow:
  1. place_call() → calls.create(url=/voice?interview_id=..., statusCallback=/call-status)
  2. Twilio fetches /voice and gets TwiML: <Say> the question, <Record transcribe>
  3. Recording done → POST /handle-response; transcript ready → POST /transcription-callback
  4. Call ends → POST /call-status with CallStatus=completed|failed|busy|no-answer|canceled
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urlencode

from twilio.base.exceptions import TwilioException
from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from interviewer.errors import UpstreamFailure
from interviewer.telephony.base import CallProvider
from interviewer.telephony.script import Hangup, Pause, Record, Redirect, Say, VoiceScript

log = logging.getLogger("interviewer.telephony.twilio")

STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]


class TwilioCallProvider(CallProvider):
    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        base_url: str,
        voice: str = "alice",
        timeout: float = 15.0,
        client: Optional[Client] = None,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._base_url = base_url.rstrip("/")
        self._voice = voice
        self._timeout = timeout
        self._client = client

    @property
    def client(self) -> Client:
        # Built on first use: Client() raises without credentials, and the
        # webhook side of the app works fine without them.
        if self._client is None:
            self._client = Client(self._account_sid, self._auth_token)
        return self._client

    async def place_call(self, to: str, interview_id: str) -> str:
        voice_url = f"{self._base_url}/voice?{urlencode({'interview_id': interview_id})}"
        status_url = f"{self._base_url}/call-status?{urlencode({'interview_id': interview_id})}"
        log.info("Creating Twilio call with URL: %s", voice_url)

        try:
            call = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.calls.create,
                    to=to,
                    from_=self._from_number,
                    url=voice_url,
                    status_callback=status_url,
                    status_callback_event=STATUS_CALLBACK_EVENTS,
                    status_callback_method="POST",
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamFailure(
                "call_provider", f"call creation timed out after {self._timeout}s",
                {"interview_id": interview_id},
            ) from e
        except TwilioException as e:
            raise UpstreamFailure(
                "call_provider", str(e), {"interview_id": interview_id},
            ) from e

        log.info("Twilio call created: %s", call.sid)
        return call.sid

    def render(self, script: VoiceScript) -> str:
        vr = VoiceResponse()
        for step in script.steps:
            if isinstance(step, Say):
                vr.say(step.text, voice=self._voice)
            elif isinstance(step, Pause):
                vr.pause(length=step.seconds)
            elif isinstance(step, Record):
                vr.record(
                    action=step.action,
                    method="POST",
                    max_length=step.max_length,
                    transcribe=True,
                    transcribe_callback=step.transcribe_callback,
                )
            elif isinstance(step, Redirect):
                vr.redirect(step.url, method="POST")
            elif isinstance(step, Hangup):
                vr.hangup()
            else:
                raise TypeError(f"Unknown script step: {step!r}")
        return str(vr)
