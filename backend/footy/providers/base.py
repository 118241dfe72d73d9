from abc import ABC, abstractmethod
from typing import Sequence

from footy.models.match import MatchSnapshot


class ProviderError(Exception):
    """Result provider failed: transport error, bad status or in-band errors."""


class ResultProvider(ABC):
    """Abstract base class for match result providers."""

    @abstractmethod
    async def fetch_by_ids(self, match_ids: Sequence[int]) -> list[MatchSnapshot]:
        """Fetch current snapshots for the given external match ids.

        Ids unknown to the provider are simply absent from the result.
        Raises ProviderError on any failure.
        """
        ...

    async def aclose(self) -> None:
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
