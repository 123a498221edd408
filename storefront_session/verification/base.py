"""Base human-verification proof provider."""
from abc import ABC, abstractmethod


class HumanProofProvider(ABC):
    """Obtains a challenge-response proof (e.g. a reCAPTCHA token) before a code is sent."""

    provider_name: str = "unknown"

    @abstractmethod
    async def obtain_proof(self, action: str = "login") -> str:
        """Return a proof token. Raises ChallengeSetupFailed if none can be produced."""
        ...

    @abstractmethod
    async def release(self) -> None:
        """Drop any page/widget resources. Safe to call more than once."""
        ...
