"""VoiceScript — a provider-neutral description of what to do on a call.

The state machine returns a VoiceScript for every voice-turn and advance
request; a CallProvider renders it to the provider's own markup (TwiML for
Twilio). Keeping the script as plain data lets the transitions be tested
without any provider SDK.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass
class Say:
    text: str


@dataclass
class Pause:
    seconds: int = 1


@dataclass
class Record:
    """Record the caller and request a transcription.

    ``action`` receives the recording-complete request; ``transcribe_callback``
    receives the transcription text once it is ready.
    """

    action: str
    transcribe_callback: str
    max_length: int = 90


@dataclass
class Redirect:
    url: str


@dataclass
class Hangup:
    pass


Step = Union[Say, Pause, Record, Redirect, Hangup]


@dataclass
class VoiceScript:
    steps: list[Step] = field(default_factory=list)

    def say(self, text: str) -> "VoiceScript":
        self.steps.append(Say(text))
        return self

    def pause(self, seconds: int = 1) -> "VoiceScript":
        self.steps.append(Pause(seconds))
        return self

    def record(self, action: str, transcribe_callback: str, max_length: int = 90) -> "VoiceScript":
        self.steps.append(Record(action, transcribe_callback, max_length))
        return self

    def redirect(self, url: str) -> "VoiceScript":
        self.steps.append(Redirect(url))
        return self

    def hangup(self) -> "VoiceScript":
        self.steps.append(Hangup())
        return self

    @property
    def ends_call(self) -> bool:
        return bool(self.steps) and isinstance(self.steps[-1], Hangup)

    @property
    def spoken(self) -> list[str]:
        """Every utterance in the script, in order."""
        return [s.text for s in self.steps if isinstance(s, Say)]
