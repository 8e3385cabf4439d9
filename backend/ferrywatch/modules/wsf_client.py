"""Washington State Ferries Vessels REST API client.

Endpoints used:
  - vessellocations                     live position / terminal state per vessel
  - vesselbasics                        fleet list (names, abbreviations)
  - vesselhistory/{name}/{start}/{end}  historical sailings for training

Reference: https://www.wsdot.wa.gov/ferries/api/vessels/rest/help
WSF encodes instants as ``/Date(1700000000000-0800)/`` (epoch ms, UTC).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

import httpx

from ferrywatch.config import settings
from ferrywatch.errors import FeedError
from ferrywatch.schemas.vessel_location import VesselLocation
from ferrywatch.utils.http_retry import retry_request

logger = logging.getLogger(__name__)

_WSF_DATE_RE = re.compile(r"/Date\((-?\d+)(?:[+-]\d{4})?\)/")


@dataclass(frozen=True)
class VesselHistoryEntry:
    """One historical sailing. Terminal fields are names, not abbreviations."""

    vessel_id: Optional[int]
    vessel_name: str
    departing: Optional[str]
    arriving: Optional[str]
    scheduled_depart: Optional[datetime]
    actual_depart: Optional[datetime]
    est_arrival: Optional[datetime]


@dataclass(frozen=True)
class VesselBasic:
    vessel_id: int
    vessel_name: str
    vessel_abbrev: Optional[str]
    in_service: bool


def parse_wsf_date(value: Any) -> Optional[datetime]:
    """Parse a WSF ``/Date(ms±hhmm)/`` string (or ISO-8601) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value)
    m = _WSF_DATE_RE.fullmatch(text.strip())
    if m:
        return datetime.fromtimestamp(int(m.group(1)) / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"unrecognised WSF date {text!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_vessel_location(raw: dict) -> VesselLocation:
    routes = raw.get("OpRouteAbbrev") or []
    if isinstance(routes, str):
        routes = [routes]
    return VesselLocation(
        vessel_id=raw["VesselID"],
        vessel_name=raw["VesselName"],
        departing_terminal_id=raw["DepartingTerminalID"],
        departing_terminal_name=raw["DepartingTerminalName"],
        departing_terminal_abbrev=raw["DepartingTerminalAbbrev"],
        arriving_terminal_id=raw.get("ArrivingTerminalID"),
        arriving_terminal_name=raw.get("ArrivingTerminalName"),
        arriving_terminal_abbrev=raw.get("ArrivingTerminalAbbrev"),
        latitude=raw["Latitude"],
        longitude=raw["Longitude"],
        speed=raw.get("Speed") or 0.0,
        heading=raw.get("Heading") or 0.0,
        in_service=bool(raw.get("InService", True)),
        at_dock=bool(raw["AtDock"]),
        scheduled_departure=parse_wsf_date(raw.get("ScheduledDeparture")),
        left_dock=parse_wsf_date(raw.get("LeftDock")),
        eta=parse_wsf_date(raw.get("Eta")),
        op_route_abbrev=routes[0] if routes else None,
        vessel_position_num=raw.get("VesselPositionNum"),
        timestamp=parse_wsf_date(raw["TimeStamp"]),
    )


def parse_vessel_history(raw: dict) -> VesselHistoryEntry:
    return VesselHistoryEntry(
        vessel_id=raw.get("VesselId"),
        vessel_name=raw.get("Vessel") or "",
        departing=raw.get("Departing"),
        arriving=raw.get("Arriving"),
        scheduled_depart=parse_wsf_date(raw.get("ScheduledDepart")),
        actual_depart=parse_wsf_date(raw.get("ActualDepart")),
        est_arrival=parse_wsf_date(raw.get("EstArrival")),
    )


class WsfClient:
    """Thin synchronous client. Use as a context manager to close the connection pool."""

    def __init__(
        self,
        base_url: str | None = None,
        access_code: str | None = None,
        timeout: float | None = None,
        http_client: httpx.Client | None = None,
        retry_delays: list[float] | None = None,
    ) -> None:
        self.base_url = (base_url or settings.WSF_API_BASE_URL).rstrip("/")
        self.access_code = access_code if access_code is not None else settings.WSF_API_ACCESS_CODE
        self._client = http_client or httpx.Client(timeout=timeout or settings.WSF_TIMEOUT)
        self._retry_delays = retry_delays

    def __enter__(self) -> "WsfClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _get_json(self, path: str) -> Any:
        if not self.access_code:
            raise FeedError("WSF_API_ACCESS_CODE is not configured")
        url = f"{self.base_url}/{path}"
        try:
            resp = retry_request(
                self._client.get,
                url,
                params={"apiaccesscode": self.access_code},
                delays=self._retry_delays,
            )
            return resp.json()
        except httpx.HTTPError as exc:
            raise FeedError(f"WSF request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise FeedError(f"WSF response from {path} is not JSON") from exc

    def fetch_vessel_locations(self) -> list[VesselLocation]:
        """Current location of every vessel. Malformed records are skipped with a warning."""
        payload = self._get_json("vessellocations")
        if not isinstance(payload, list):
            raise FeedError("vessellocations payload is not a list")
        locations: list[VesselLocation] = []
        for raw in payload:
            if raw.get("DepartingTerminalID") is None:
                logger.debug("Skipping %s: no departing terminal", raw.get("VesselName"))
                continue
            try:
                locations.append(parse_vessel_location(raw))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed location for %s: %s", raw.get("VesselName"), exc)
        logger.info("WSF: received %d vessel locations (%d usable)", len(payload), len(locations))
        return locations

    def fetch_vessel_basics(self) -> list[VesselBasic]:
        payload = self._get_json("vesselbasics")
        if not isinstance(payload, list):
            raise FeedError("vesselbasics payload is not a list")
        vessels = []
        for raw in payload:
            if raw.get("VesselID") is None or not raw.get("VesselName"):
                continue
            vessels.append(VesselBasic(
                vessel_id=raw["VesselID"],
                vessel_name=raw["VesselName"],
                vessel_abbrev=raw.get("VesselAbbrev"),
                # Status 1 = in service, 2 = maintenance, 3 = out of service
                in_service=raw.get("Status", 1) == 1,
            ))
        return vessels

    def fetch_vessel_history(
        self, vessel_name: str, date_start: date, date_end: date
    ) -> list[VesselHistoryEntry]:
        path = f"vesselhistory/{vessel_name}/{date_start.isoformat()}/{date_end.isoformat()}"
        payload = self._get_json(path)
        if not isinstance(payload, list):
            raise FeedError(f"vesselhistory payload for {vessel_name} is not a list")
        entries = []
        for raw in payload:
            try:
                entries.append(parse_vessel_history(raw))
            except ValueError as exc:
                logger.warning("Skipping malformed history record for %s: %s", vessel_name, exc)
        return entries
