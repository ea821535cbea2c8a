from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SentEmail:
    """Provider acknowledgement for an accepted message."""

    email_id: str


class AbstractEmailSender(ABC):
    """Interface for transactional email providers."""

    @abstractmethod
    async def send(
        self,
        *,
        to: list[str],
        subject: str,
        html: str,
        from_address: str,
        reply_to: str | None = None,
    ) -> SentEmail:
        """Hand one message to the provider.

        Raises:
            UpstreamAppError: If the provider rejects the message
                (``details["upstream_status"]`` holds its status) or is unreachable.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""
