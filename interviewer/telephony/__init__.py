"""Call provider boundary: voice scripts and the adapters that render them."""

from .base import CallProvider
from .script import Hangup, Pause, Record, Redirect, Say, VoiceScript

__all__ = ["CallProvider", "Hangup", "Pause", "Record", "Redirect", "Say", "VoiceScript"]
