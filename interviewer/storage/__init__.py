from .base import InterviewRepository
from .jsonl import JsonlInterviewRepository
from .memory import InMemoryInterviewRepository

__all__ = ["InMemoryInterviewRepository", "InterviewRepository", "JsonlInterviewRepository"]
