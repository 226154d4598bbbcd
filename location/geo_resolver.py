"""One-shot user geolocation with a bounded wait."""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class LocationDenied(Exception):
    """Raised by a provider when the user refuses to share a location."""


@dataclass(frozen=True)
class UserLocation:
    """Resolved (or refused) user coordinates."""
    lat: Optional[float] = None
    lon: Optional[float] = None
    permission_denied: bool = False

    @classmethod
    def denied(cls) -> "UserLocation":
        return cls(permission_denied=True)

    @property
    def is_resolved(self) -> bool:
        return (
            not self.permission_denied
            and self.lat is not None
            and self.lon is not None
        )


class LocationProvider(Protocol):
    """Platform capability that returns the device position."""

    async def get_current_position(
        self, high_accuracy: bool, timeout: float, maximum_age: float
    ) -> Tuple[float, float]:
        ...


class StaticLocationProvider:
    """Provider returning fixed coordinates."""

    def __init__(self, lat: float, lon: float):
        self.lat = lat
        self.lon = lon

    async def get_current_position(
        self, high_accuracy: bool, timeout: float, maximum_age: float
    ) -> Tuple[float, float]:
        return self.lat, self.lon


class ResolverState(enum.Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class LocationStore:
    """Session-scoped holder for the user location."""

    def __init__(self):
        self.location: Optional[UserLocation] = None

    def save(self, location: UserLocation) -> None:
        self.location = location

    def current(self) -> Optional[UserLocation]:
        """The stored location, only if it carries usable coordinates."""
        if self.location and self.location.is_resolved:
            return self.location
        return None


class GeoResolver:
    """Requests the user location once, never raising to the caller."""

    TIMEOUT_SECONDS = 10.0

    def __init__(
        self,
        provider: Optional[LocationProvider],
        store: Optional[LocationStore] = None,
        timeout: float = TIMEOUT_SECONDS,
    ):
        """
        Initialize the resolver.

        Args:
            provider: Geolocation capability, or None when the platform has none
            store: Session store to keep a successful result in
            timeout: Seconds to wait for the provider (default: 10)
        """
        self.provider = provider
        self.store = store or LocationStore()
        self.timeout = timeout
        self.state = ResolverState.UNRESOLVED
        self.location: Optional[UserLocation] = None

    async def resolve(self) -> Optional[UserLocation]:
        """
        Resolve the user location on the first call.

        Later calls do not contact the provider again; they return whatever
        the first call produced (None while it is still in flight).

        Returns:
            UserLocation, with permission_denied set when unavailable
        """
        if self.state is not ResolverState.UNRESOLVED:
            logger.debug(f"Location already {self.state.value}, skipping request")
            return self.location

        self.state = ResolverState.RESOLVING
        self.location = await self._request()
        self.state = ResolverState.RESOLVED

        if self.location.is_resolved:
            self.store.save(self.location)
        return self.location

    async def _request(self) -> UserLocation:
        if self.provider is None:
            logger.warning("Geolocation not supported, continuing without location")
            return UserLocation.denied()

        try:
            lat, lon = await asyncio.wait_for(
                self.provider.get_current_position(
                    high_accuracy=True, timeout=self.timeout, maximum_age=0
                ),
                timeout=self.timeout,
            )
        except LocationDenied:
            logger.warning("Location permission denied")
            return UserLocation.denied()
        except asyncio.TimeoutError:
            logger.warning(f"Location request timed out after {self.timeout}s")
            return UserLocation.denied()
        except Exception as e:
            logger.warning(f"Location request failed: {e}", exc_info=True)
            return UserLocation.denied()

        logger.info("User location resolved")
        return UserLocation(lat=lat, lon=lon)
