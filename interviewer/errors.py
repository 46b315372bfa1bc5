"""Exception types for the interview service.

Which path raises what, and who catches it:

  ValidationError         client start request with a malformed phone number
  SessionNotFoundError    provider webhook for a call with no live session
  RecordNotFoundError     durable record missing for a call/interview id
  UpstreamFailure         question generator, call provider or persistence error
  MalformedClientMessage  bad JSON or unknown message type on the client socket
"""

from __future__ import annotations

from typing import Any, Optional


class InterviewError(Exception):
    """Base class for every error raised by the interview core."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ValidationError(InterviewError):
    """Client input rejected before any side effect."""


class SessionNotFoundError(InterviewError):
    def __init__(self, call_id: str):
        super().__init__("Interview session not found", {"call_id": call_id})
        self.call_id = call_id


class RecordNotFoundError(InterviewError):
    def __init__(self, key: str, by: str = "id"):
        super().__init__("Interview not found", {by: key})
        self.key = key


class UpstreamFailure(InterviewError):
    """A collaborator (generator, provider, persistence) failed or timed out."""

    def __init__(self, service: str, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"{service}: {message}", context)
        self.service = service


class MalformedClientMessage(InterviewError):
    """A client socket message could not be understood."""
