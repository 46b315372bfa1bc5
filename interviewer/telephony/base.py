"""CallProvider ABC — places outbound calls and renders voice scripts.

Implementors wrap a specific telephony service. The rest of the stack only
ever sees call ids (strings) and VoiceScripts.
"""

from abc import ABC, abstractmethod

from interviewer.telephony.script import VoiceScript


class CallProvider(ABC):
    """Abstract telephony backend."""

    #: Content type of the markup returned by ``render``.
    media_type: str = "application/xml"

    @abstractmethod
    async def place_call(self, to: str, interview_id: str) -> str:
        """Dial ``to`` and point the call's webhooks at this service.

        The voice webhook URL carries ``interview_id`` so the first
        voice-turn can find its record even before the call id is attached.

        Returns:
            The provider's call identifier.

        Raises:
            UpstreamFailure: the provider rejected the call or timed out.
        """

    @abstractmethod
    def render(self, script: VoiceScript) -> str:
        """Render a VoiceScript to the provider's response markup."""
