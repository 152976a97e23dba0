from abc import ABC, abstractmethod

from tradesfinder.common.logging import get_logger


class BaseIntegration(ABC):
    """Base class for external service clients.

    Each client runs against the real API when a key is configured and in a
    logging-only mock mode when the key starts with ``mock_``.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"integrations.{name}")

    @property
    @abstractmethod
    def is_mock(self) -> bool:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True when the integration is reachable and functional."""
        ...
