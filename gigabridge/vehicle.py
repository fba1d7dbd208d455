from __future__ import annotations

import logging
from math import atan2, cos, radians, sin, sqrt

import httpx
from pydantic import BaseModel, ValidationError

from .config import TESSIE_API_URL
from .errors import RemoteCommandError

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0
MAX_FLASHES = 5


class Location(BaseModel):
    latitude: float
    longitude: float


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_M * 2 * atan2(sqrt(a), sqrt(1 - a))


def _mask(headers: httpx.Headers) -> str:
    lines = []
    for key, value in headers.items():
        if key.lower() == "authorization":
            value = value[:12] + "..."
        lines.append(f"\t -> {key}: {value}")
    return "\n".join(lines)


async def _log_request(request: httpx.Request) -> None:
    logger.info(
        "Outgoing request to Tessie API:\n"
        f"\t{request.method} {request.url}\n"
        f"\tHeaders: \n{_mask(request.headers)}"
    )


class VehicleClient:
    """Bearer-token client for the Tessie vehicle API."""

    def __init__(
        self,
        token: str,
        vin: str,
        api_url: str = TESSIE_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.vin = vin
        self._client = httpx.AsyncClient(
            base_url=f"{api_url.rstrip('/')}/{vin}",
            headers={"Accept": "application/json", "Authorization": f"Bearer {token}"},
            event_hooks={"request": [_log_request]},
            transport=transport,
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str) -> httpx.Response:
        try:
            resp = await self._client.request(method, path)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise RemoteCommandError(f"Tessie request {method} {path} failed: {e}") from e
        return resp

    async def _command(self, path: str, check_result: bool = False) -> None:
        resp = await self._request("POST", path)
        if not check_result:
            return
        try:
            ok = resp.json().get("result")
        except ValueError as e:
            raise RemoteCommandError(f"Tessie command {path} returned no JSON: {e}") from e
        if not ok:
            raise RemoteCommandError(f"Tessie command {path} returned result=false")

    async def get_location(self) -> Location:
        resp = await self._request("GET", "/location")
        try:
            return Location.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise RemoteCommandError(f"Unexpected location payload: {e}") from e

    async def is_in_target_location(self, latitude: float, longitude: float, radius: float = 100) -> bool:
        loc = await self.get_location()
        distance = haversine_m(latitude, longitude, loc.latitude, loc.longitude)
        logger.info(f"Vehicle is {distance:.0f} m from target (radius {radius:g} m)")
        return distance <= radius

    # fire-and-forget commands
    async def unlock(self) -> None:
        await self._command("/command/unlock?wait_for_completion=false")

    async def lock(self) -> None:
        await self._command("/command/lock?wait_for_completion=false")

    async def open_frunk(self) -> None:
        await self._command("/command/activate_front_trunk")

    async def start_climate(self) -> None:
        await self._command("/command/start_climate?wait_for_completion=false")

    async def wake(self) -> None:
        await self._command("/wake", check_result=True)

    async def honk(self) -> None:
        await self._command("/command/honk", check_result=True)

    async def flash_lights(self, count: int = 1) -> None:
        for i in range(count):
            try:
                await self._command("/command/flash?retry_duration=5", check_result=True)
            except RemoteCommandError as e:
                raise RemoteCommandError(f"Flash lights command failed on iteration {i + 1}: {e}") from e

    async def find_vehicle(self, flashes: int, use_horn: bool = False) -> None:
        """Wake the car, optionally honk, then flash the lights ``flashes`` times.

        The car is woken first so the horn and the flashes follow each other
        without the wake-up delay in between.
        """
        if flashes < 0 or flashes > MAX_FLASHES:
            raise ValueError(f"Number of flashes must be between 0 and {MAX_FLASHES}")
        await self.wake()
        if use_horn:
            await self.honk()
        await self.flash_lights(flashes)
