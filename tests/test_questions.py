"""Tests for prompt building and the OpenAI question generator (mocked client)."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from interviewer.errors import UpstreamFailure
from interviewer.models.session import QuestionTurn
from interviewer.questions import OpenAIQuestionGenerator, build_prompt, clean_question


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _generator(create, timeout=20.0) -> OpenAIQuestionGenerator:
    client = MagicMock()
    client.chat.completions.create = create
    return OpenAIQuestionGenerator(api_key="sk-test", model="gpt-3.5-turbo", timeout=timeout, client=client)


class TestBuildPrompt:
    def test_opening_question(self):
        prompt = build_prompt("distributed systems", [])
        assert "distributed systems" in prompt
        assert "opening question" in prompt
        assert "follow-up" not in prompt

    def test_history_in_order(self):
        turns = [
            QuestionTurn(seq=0, question="What do you build?", answer="Payment APIs"),
            QuestionTurn(seq=1, question="Which database?", answer=None),
        ]
        prompt = build_prompt("backend", turns)

        assert prompt.index("1. Q: What do you build?") < prompt.index("A: Payment APIs")
        assert prompt.index("A: Payment APIs") < prompt.index("2. Q: Which database?")
        assert "(answer not yet transcribed)" in prompt
        assert "follow-up" in prompt

    def test_empty_answer_is_kept(self):
        prompt = build_prompt("backend", [QuestionTurn(seq=0, question="Why?", answer="")])
        assert "(answer not yet transcribed)" not in prompt


class TestCleanQuestion:
    @pytest.mark.parametrize("raw,expected", [
        ("What is a closure?", "What is a closure?"),
        ("Question 2: What is a closure?", "What is a closure?"),
        ("3. What is a closure?", "What is a closure?"),
        ('"What is a closure?"', "What is a closure?"),
        ("  “What is a closure?”  ", "What is a closure?"),
        ("", ""),
    ])
    def test_clean(self, raw, expected):
        assert clean_question(raw) == expected


class TestOpenAIQuestionGenerator:
    @pytest.mark.asyncio
    async def test_generate(self):
        create = AsyncMock(return_value=_completion("Question 1: How do you test async code?"))
        generator = _generator(create)

        question = await generator.generate("prompt text")

        assert question == "How do you test async code?"
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["messages"] == [{"role": "system", "content": "prompt text"}]

    @pytest.mark.asyncio
    async def test_api_error(self):
        generator = _generator(AsyncMock(side_effect=OpenAIError("rate limited")))
        with pytest.raises(UpstreamFailure) as exc:
            await generator.generate("prompt")
        assert exc.value.service == "question_generator"
        assert "rate limited" in exc.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_empty_completion(self, content):
        generator = _generator(AsyncMock(return_value=_completion(content)))
        with pytest.raises(UpstreamFailure, match="empty completion"):
            await generator.generate("prompt")

    @pytest.mark.asyncio
    async def test_no_choices(self):
        generator = _generator(AsyncMock(return_value=SimpleNamespace(choices=[])))
        with pytest.raises(UpstreamFailure, match="empty completion"):
            await generator.generate("prompt")

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        generator = _generator(slow, timeout=0.05)
        with pytest.raises(UpstreamFailure, match="timed out"):
            await generator.generate("prompt")
