"""OpenSky Network live aircraft.

Auth chain:
1. OAuth2 client-credentials token (from the "opensky" credential), cached
   until 5 minutes before expiry.
2. If token acquisition fails for any reason, auth is suspended for 30
   minutes and requests go out anonymously. Basic Auth is never attempted.

A 401 on an authenticated sub-request forces one token refresh and one
retry of that sub-request; a second failure abandons the fetch and the
caller gets stale cache.

Authenticated fetches query three bounded regions in parallel (cheaper in
credits, better coverage where it matters) and merge by ICAO24.
Anonymous fetches issue one global query.
"""
import asyncio
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from commandcenter.core.errors import AuthError, FetchError, ParseError
from commandcenter.core.http import get_json, post_form
from commandcenter.core.logging import get_logger
from commandcenter.core.registry import SourceRegistry, get_registry

logger = get_logger(__name__)

TOKEN_REFRESH_MARGIN = 5 * 60
AUTH_SUSPEND_SECONDS = 30 * 60
DEFAULT_TOKEN_LIFETIME = 30 * 60


@dataclass(frozen=True)
class Bounds:
    lamin: float
    lomin: float
    lamax: float
    lomax: float

    def as_params(self) -> dict[str, str]:
        return {
            "lamin": str(self.lamin),
            "lomin": str(self.lomin),
            "lamax": str(self.lamax),
            "lomax": str(self.lomax),
        }


REGIONS: dict[str, Bounds] = {
    "middle_east": Bounds(lamin=12.0, lomin=25.0, lamax=42.0, lomax=63.0),
    "eastern_europe": Bounds(lamin=43.0, lomin=20.0, lamax=60.0, lomax=42.0),
    "east_asia": Bounds(lamin=15.0, lomin=105.0, lamax=42.0, lomax=135.0),
}

# Military ICAO24 hex ranges (partial - US, UK, NATO)
MILITARY_PREFIXES = ("ae", "af", "43c", "3f", "3e", "380", "340")


class Aircraft(BaseModel):
    icao24: str
    callsign: str = ""
    origin_country: str = ""
    longitude: float | None = None
    latitude: float | None = None
    baro_altitude: float | None = None
    velocity: float | None = None
    true_track: float | None = None
    on_ground: bool = False
    squawk: str | None = None
    category: int = 0

    @property
    def is_military(self) -> bool:
        return is_military_icao(self.icao24)


def is_military_icao(icao24: str) -> bool:
    return icao24.lower().startswith(MILITARY_PREFIXES)


def _at(state: list, index: int) -> Any:
    return state[index] if index < len(state) else None


def parse_states(payload: Any) -> list[Aircraft]:
    """Parse /states/all state vectors, dropping aircraft without a position."""
    if not isinstance(payload, dict):
        raise ParseError("opensky", "expected an object")
    states = payload.get("states") or []
    if not isinstance(states, list):
        raise ParseError("opensky", "states is not a list")

    aircraft = []
    for s in states:
        if not isinstance(s, list) or not s or _at(s, 5) is None or _at(s, 6) is None:
            continue
        try:
            aircraft.append(Aircraft(
                icao24=s[0],
                callsign=(_at(s, 1) or "").strip(),
                origin_country=_at(s, 2) or "",
                longitude=_at(s, 5),
                latitude=_at(s, 6),
                baro_altitude=_at(s, 7),
                on_ground=bool(_at(s, 8)),
                velocity=_at(s, 9),
                true_track=_at(s, 10),
                squawk=_at(s, 14),
                category=_at(s, 17) or 0,
            ))
        except (TypeError, ValueError) as e:
            raise ParseError("opensky", "unexpected state vector") from e
    return aircraft


@dataclass
class _Token:
    access_token: str
    expires_at: float


class OpenSkyClient:
    SOURCE = "opensky"

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.source = registry.source(self.SOURCE)
        self._token: _Token | None = None
        self._auth_suspended_until = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def auth_suspended(self) -> bool:
        return self.registry.clock() < self._auth_suspended_until

    async def get_token(self, stale: str | None = None) -> str | None:
        """Current bearer token, or None to go anonymous.

        Passing the token that just got a 401 as ``stale`` forces a refresh
        unless another sub-request already replaced it.
        """
        if self.auth_suspended:
            return None
        credentials = await self.registry.credentials.get_api_key_with_name(self.SOURCE)
        if credentials is None:
            return None

        async with self._token_lock:
            now = self.registry.clock()
            token = self._token
            if token is not None and token.access_token != stale and now < token.expires_at - TOKEN_REFRESH_MARGIN:
                return token.access_token

            try:
                payload = await post_form(
                    self.registry.http,
                    self.SOURCE,
                    self.registry.settings.opensky_token_url,
                    {
                        "grant_type": "client_credentials",
                        "client_id": credentials.key_name,
                        "client_secret": credentials.key,
                    },
                    timeout=self.source.policy.timeout,
                )
                access_token = payload["access_token"]
                expires_in = float(payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME)
            except (FetchError, KeyError, TypeError, ValueError) as e:
                self._token = None
                self._auth_suspended_until = now + AUTH_SUSPEND_SECONDS
                logger.warning(
                    "opensky_token_failed",
                    error=e.__class__.__name__,
                    suspended_for=AUTH_SUSPEND_SECONDS,
                )
                return None

            self._token = _Token(access_token=access_token, expires_at=self.registry.clock() + expires_in)
            return access_token

    async def _states(self, bounds: Bounds | None, token: str | None) -> list[Aircraft]:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        payload = await get_json(
            self.registry.http,
            self.SOURCE,
            f"{self.registry.settings.opensky_base_url}/states/all",
            params=bounds.as_params() if bounds else None,
            headers=headers,
            timeout=self.source.policy.timeout,
        )
        return parse_states(payload)

    async def _region_states(self, bounds: Bounds, token: str) -> list[Aircraft]:
        try:
            return await self._states(bounds, token)
        except AuthError:
            fresh = await self.get_token(stale=token)
            if fresh is None:
                raise
            return await self._states(bounds, fresh)

    async def _produce(self) -> list[Aircraft]:
        token = await self.get_token()
        if token is None:
            self.source.set_premium(False)
            return await self._states(None, None)

        self.source.set_premium(True)
        results = await asyncio.gather(
            *(self._region_states(bounds, token) for bounds in REGIONS.values()),
            return_exceptions=True,
        )
        merged: dict[str, Aircraft] = {}
        for result in results:
            if isinstance(result, BaseException):
                raise result
            for aircraft in result:
                merged.setdefault(aircraft.icao24, aircraft)
        return list(merged.values())

    async def fetch_live_aircraft(self) -> list[Aircraft]:
        """Live aircraft with a known position (cached 15s)."""
        return await self.source.fetch("states", self._produce, empty=list)

    async def fetch_military_aircraft(self) -> list[Aircraft]:
        return [a for a in await self.fetch_live_aircraft() if a.is_military]


# Singleton instance
_client: OpenSkyClient | None = None


def get_opensky_client() -> OpenSkyClient:
    global _client
    if _client is None:
        _client = OpenSkyClient(get_registry())
    return _client
