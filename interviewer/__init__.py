"""Automated phone interviews: Twilio call flow driven by generated questions."""

__version__ = "0.1.0"
