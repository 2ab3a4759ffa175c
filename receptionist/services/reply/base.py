"""Reply generator interface."""
from abc import ABC, abstractmethod

from pydantic import BaseModel

from receptionist.services.call_session.models import ReplyContext


class Reply(BaseModel):
    """Text to speak plus the classification label for the turn."""

    text: str
    label: str


class ReplyGenerator(ABC):
    """Turns a caller utterance into a receptionist reply."""

    @abstractmethod
    async def generate_reply(self, text: str, context: ReplyContext) -> Reply:
        """Generate a reply.

        Raises:
            GenerationError: if no reply can be produced
        """
        pass
