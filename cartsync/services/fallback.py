# cartsync/services/fallback.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

from cartsync.exceptions import RemoteCartError
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class Source(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    value: T
    source: Source
    error: RemoteCartError | None = None


class FallbackPolicy(ABC):
    """Wybiera, ktora strategia (remote / local) odpowiada na operacje."""

    @abstractmethod
    def resolve(
        self,
        operation: str,
        remote: Callable[[], T],
        local: Callable[[], T],
    ) -> Resolution[T]:
        ...


class SilentFallback(FallbackPolicy):
    """
    Remote najpierw; przy RemoteCartError cicho przechodzimy na local.
    Blad nie wychodzi do wywolujacego, zostaje tylko w Resolution.error i w logu.
    """

    def resolve(self, operation, remote, local):
        try:
            return Resolution(remote(), Source.REMOTE)
        except RemoteCartError as e:
            logger.warning(f"Remote cart {operation} failed, using local cart: {e}")
            return Resolution(local(), Source.LOCAL, error=e)


class StrictRemote(FallbackPolicy):
    """Only the remote strategy; errors propagate to the caller."""

    def resolve(self, operation, remote, local):
        return Resolution(remote(), Source.REMOTE)
