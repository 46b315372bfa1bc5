"""Data models for the interview layer."""

from .interview import InterviewRecord, InterviewResponse, InterviewStatus
from .session import Phase, QuestionTurn, SessionState

__all__ = [
    "InterviewRecord",
    "InterviewResponse",
    "InterviewStatus",
    "Phase",
    "QuestionTurn",
    "SessionState",
]
