"""Question generation — prompt building and the OpenAI-backed generator."""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError

from interviewer.errors import UpstreamFailure
from interviewer.models.session import QuestionTurn

log = logging.getLogger("interviewer.questions")


def build_prompt(topic: str, turns: Sequence[QuestionTurn]) -> str:
    """System prompt for the next question, from the full history in order.

    Unanswered questions (transcript still pending) are listed with an
    empty answer so the model does not repeat them.
    """
    lines = [
        f"You are conducting a professional phone interview about {topic}.",
    ]
    if turns:
        lines.append("Questions asked so far, in order, with the candidate's answers:")
        for t in turns:
            answer = t.answer if t.answer is not None else "(answer not yet transcribed)"
            lines.append(f"{t.seq + 1}. Q: {t.question}")
            lines.append(f"   A: {answer}")
        lines.append("Generate a relevant follow-up question.")
    else:
        lines.append("This is the first question of the interview. Generate an opening question.")
    lines.append(
        "Keep it concise and clear. Your reply is read aloud by text-to-speech: "
        "reply with the question only, no numbering, labels or quotes."
    )
    return "\n".join(lines)


_LABEL = re.compile(r"^\s*(?:question\s*\d*\s*[:.\-]|\d+\s*[.)])\s*", re.IGNORECASE)


def clean_question(text: str) -> str:
    """Strip labels, numbering and wrapping quotes the model sometimes adds."""
    text = _LABEL.sub("", text.strip())
    return text.strip().strip('"“”').strip()


class QuestionGenerator(ABC):
    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return the next question text for this prompt.

        Raises:
            UpstreamFailure: the model failed, timed out or returned nothing.
        """


class OpenAIQuestionGenerator(QuestionGenerator):
    """Chat-completions generator with an enforced per-request timeout."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        timeout: float = 20.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                timeout=httpx.Timeout(self._timeout),
                max_retries=0,
            )
        return self._client

    async def generate(self, prompt: str) -> str:
        try:
            completion = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self._model,
                    messages=[{"role": "system", "content": prompt}],
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamFailure(
                "question_generator", f"timed out after {self._timeout}s"
            ) from e
        except OpenAIError as e:
            raise UpstreamFailure("question_generator", str(e)) from e

        content = completion.choices[0].message.content if completion.choices else None
        question = clean_question(content or "")
        if not question:
            raise UpstreamFailure("question_generator", "empty completion")
        log.debug("Generated question: %s", question)
        return question
