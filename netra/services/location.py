"""
Position providers for the "where am I" command.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from netra.config import LocationServiceConfig, get_config
from netra.errors import SensorUnavailableError, ServiceError

logger = logging.getLogger(__name__)


class LocationProvider(ABC):
    """Abstract geolocation source."""

    @abstractmethod
    async def current_position(self) -> tuple[float, float]:
        """
        Return (latitude, longitude).

        Raises:
            SensorUnavailableError: No positioning hardware or access denied
            ServiceError: A fix could not be obtained this time
        """

    async def close(self) -> None:
        """Release resources."""


class NullLocationProvider(LocationProvider):
    """Used when no positioning is configured."""

    async def current_position(self) -> tuple[float, float]:
        raise SensorUnavailableError("location", "GPS hardware not detected.")


class StaticLocationProvider(LocationProvider):
    """Fixed coordinates, e.g. from the config file."""

    def __init__(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude

    async def current_position(self) -> tuple[float, float]:
        return self.latitude, self.longitude


class IPLocationProvider(LocationProvider):
    """
    Coarse position from an IP geolocation JSON endpoint.

    The endpoint must answer with ``lat``/``lon`` (ip-api.com style) or
    ``latitude``/``longitude`` keys.
    """

    def __init__(
        self,
        config: Optional[LocationServiceConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or get_config().location
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)

    async def current_position(self) -> tuple[float, float]:
        try:
            resp = await self._client.get(self.config.url)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ServiceError(f"Geolocation lookup failed: {e}") from e

        if not isinstance(data, dict):
            raise ServiceError(f"Geolocation answer is not an object: {data!r}")
        lat = data.get("lat", data.get("latitude"))
        lng = data.get("lon", data.get("longitude"))
        if lat is None or lng is None:
            raise ServiceError(f"Geolocation answer has no coordinates: {data}")
        try:
            position = float(lat), float(lng)
        except (TypeError, ValueError) as e:
            raise ServiceError(f"Geolocation answer has bad coordinates: {lat!r}, {lng!r}") from e
        logger.debug("Location: fix %.4f, %.4f", *position)
        return position

    async def close(self) -> None:
        await self._client.aclose()
