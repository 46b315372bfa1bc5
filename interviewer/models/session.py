"""Pydantic model tracking one call's progress through the interview."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Phase(str, Enum):
    GREETING = "greeting"                    # no question asked yet
    AWAITING_QUESTION = "awaiting_question"  # redirected back for the next question
    QUESTION_ASKED = "question_asked"        # caller is being recorded
    EVALUATING = "evaluating"                # recording done, deciding continue/stop
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.FAILED)


class QuestionTurn(BaseModel):
    """A question asked on the call, tagged with its 0-based sequence number."""

    seq: int
    question: str
    answer: Optional[str] = None

    @property
    def answered(self) -> bool:
        return self.answer is not None


class SessionState(BaseModel):
    """Ephemeral state for a single outbound interview call.

    Owned by the SessionStore. Handlers borrow it for the duration of one
    webhook and mutate it in place under the call's lock.
    """

    call_id: str
    interview_id: str
    topic: str = ""
    turns: list[QuestionTurn] = Field(default_factory=list)
    current_question: int = 0  # completed question/answer cycles
    phase: Phase = Phase.GREETING

    @property
    def questions(self) -> list[str]:
        return [t.question for t in self.turns]

    @property
    def answers(self) -> list[str]:
        """Received answers, ordered by the question they answer."""
        return [t.answer for t in self.turns if t.answer is not None]

    @property
    def next_seq(self) -> int:
        return len(self.turns)

    def turn(self, seq: int) -> Optional[QuestionTurn]:
        if 0 <= seq < len(self.turns):
            return self.turns[seq]
        return None

    def oldest_unanswered(self) -> Optional[QuestionTurn]:
        for t in self.turns:
            if not t.answered:
                return t
        return None
