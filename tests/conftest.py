"""Shared fakes for the interview tests: no network, no Twilio, no OpenAI."""

import os
import sys
from typing import Awaitable, Callable, Optional

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from interviewer.errors import UpstreamFailure
from interviewer.flow import QuestionFlowController
from interviewer.notifications import NotificationHub
from interviewer.questions import QuestionGenerator
from interviewer.records import InterviewRecordManager
from interviewer.session_store import SessionStore
from interviewer.storage.memory import InMemoryInterviewRepository
from interviewer.telephony.twilio_provider import TwilioCallProvider


class FakeQuestionGenerator(QuestionGenerator):
    """Returns "Question N?" and remembers every prompt."""

    def __init__(self) -> None:
        self.prompts: list[str] = []
        self.fail = False

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise UpstreamFailure("question_generator", "model unavailable")
        return f"Question {len(self.prompts)}?"


class FakeCallProvider(TwilioCallProvider):
    """Real TwiML rendering, fake dialing."""

    def __init__(self) -> None:
        super().__init__(
            account_sid="",
            auth_token="",
            from_number="+15550000000",
            base_url="https://interviews.example.com",
        )
        self.calls: list[tuple[str, str, str]] = []
        self.fail = False
        # Runs after the call id is assigned, before place_call returns.
        self.on_placed: Optional[Callable[[str, str], Awaitable[None]]] = None

    async def place_call(self, to: str, interview_id: str) -> str:
        if self.fail:
            raise UpstreamFailure("call_provider", "Twilio rejected the call")
        call_id = f"CA{len(self.calls) + 1:032d}"
        self.calls.append((to, interview_id, call_id))
        if self.on_placed is not None:
            await self.on_placed(call_id, interview_id)
        return call_id


@pytest.fixture
def generator() -> FakeQuestionGenerator:
    return FakeQuestionGenerator()


@pytest.fixture
def provider() -> FakeCallProvider:
    return FakeCallProvider()


@pytest.fixture
def repository() -> InMemoryInterviewRepository:
    return InMemoryInterviewRepository()


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore()


@pytest.fixture
def records(repository) -> InterviewRecordManager:
    return InterviewRecordManager(repository)


@pytest.fixture
def controller(sessions, records, generator, provider, hub) -> QuestionFlowController:
    return QuestionFlowController(
        sessions=sessions,
        records=records,
        generator=generator,
        provider=provider,
        notifications=hub,
        question_limit=5,
    )
