"""HTTP client for the headless CMS that stores facilities, bookings and media."""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from ..core.config import settings
from ..core.exceptions import NotFoundError, UpstreamServiceError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus, PackageType, PaymentStatus
from ..models.facility import DayNightRates, Facility, FlatRates
from ..models.time_window import parse_time_of_day

logger = logging.getLogger(__name__)

SERVICE_NAME = "cms"

# Status spellings excluded when listing bookings that occupy a facility.
INACTIVE_STATUSES = ("REJECTED", "CANCELLED", "CANCELED")

_SPORT_CATEGORY_HINTS = ("sukan", "sport")


@dataclass(frozen=True)
class FileUpload:
    """A file received from a client, ready to forward to the media library."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


def _flatten(entry: dict[str, Any]) -> dict[str, Any]:
    """Merge a nested ``attributes`` record into its envelope."""
    attributes = entry.get("attributes")
    if isinstance(attributes, dict):
        return {"id": entry.get("id"), "documentId": entry.get("documentId"), **attributes}
    return entry


def _decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _relation(value: Any) -> dict[str, Any]:
    """Resolve a relation that may be an id, a flat record or ``{"data": record}``."""
    if isinstance(value, dict) and "data" in value:
        value = value["data"]
    if isinstance(value, dict):
        return _flatten(value)
    if isinstance(value, int):
        return {"id": value}
    return {}


def normalize_facility(entry: dict[str, Any]) -> Facility:
    """
    Convert a CMS facility record into the canonical ``Facility``.

    Facilities with both day and night rates, or whose category marks them
    as a sport facility, get a day/night rate card; the rest get flat rates.
    Missing rates fall back to the configured defaults.
    """
    data = _flatten(entry)
    rates = data.get("rates") or {}
    category = data.get("category")
    if isinstance(category, dict):
        category = _relation(category).get("name")

    day_rate = _decimal(rates.get("dayRate"))
    night_rate = _decimal(rates.get("nightRate"))
    is_sport_category = bool(category) and any(
        hint in str(category).lower() for hint in _SPORT_CATEGORY_HINTS
    )

    if (day_rate and night_rate) or is_sport_category:
        hourly = _decimal(rates.get("hourlyRate"))
        rate_card = DayNightRates(
            day=day_rate or hourly or settings.default_day_rate,
            night=night_rate or hourly or settings.default_night_rate,
        )
    else:
        rate_card = FlatRates(
            hourly=_decimal(rates.get("hourlyRate")) or settings.default_hourly_rate,
            half_day=_decimal(rates.get("halfDayRate")) or settings.default_half_day_rate,
            full_day=_decimal(rates.get("fullDayRate")) or settings.default_full_day_rate,
        )

    equipment_rates = {
        name: rate
        for name, rate in ((k, _decimal(v)) for k, v in (data.get("equipmentRates") or {}).items())
        if rate is not None
    }

    return Facility(
        id=data["id"],
        document_id=data.get("documentId") or str(data["id"]),
        name=data.get("name") or "",
        capacity=int(data["capacity"]) if data.get("capacity") else None,
        category=category,
        rate_card=rate_card,
        equipment_rates=equipment_rates,
    )


def _time_of_day(data: dict[str, Any], key: str) -> Optional[str]:
    """Stored time string, or None when it is missing or cannot be parsed."""
    value = data.get(key) or None
    if value is None:
        return None
    try:
        parse_time_of_day(value)
    except ValueError:
        logger.warning(
            "Ignoring malformed booking time",
            extra={"booking_id": data.get("id"), "field": key, "value": repr(value)}
        )
        return None
    return value


def normalize_booking(entry: dict[str, Any]) -> Booking:
    """
    Convert a flat or ``attributes``-nested CMS booking record into ``Booking``.

    A malformed start or end time is dropped, so that side of the window falls
    back to the whole-day marker and the booking keeps blocking its date.
    """
    data = _flatten(entry)
    facility = _relation(data.get("facility"))

    package_type = data.get("packageType")
    try:
        package_type = PackageType(package_type) if package_type else None
    except ValueError:
        package_type = None

    return Booking(
        id=data.get("id"),
        document_id=data.get("documentId"),
        booking_number=data.get("bookingNumber"),
        applicant_name=data.get("name"),
        department=data.get("jabatan"),
        address=data.get("address"),
        email=data.get("email"),
        phone_number=data.get("phoneNo"),
        purpose=data.get("purpose"),
        event_name=data.get("eventName"),
        facility_id=facility.get("id"),
        facility_name=facility.get("name"),
        start_date=data.get("startDate") or None,
        end_date=data.get("endDate") or data.get("startDate") or None,
        start_time=_time_of_day(data, "startTime"),
        end_time=_time_of_day(data, "endTime"),
        attendance=data.get("attendance"),
        package_type=package_type,
        booking_status=BookingStatus.parse(data.get("bookingStatus") or BookingStatus.PENDING),
        payment_status=PaymentStatus.parse(data.get("paymentStatus")),
        total_price=_decimal(data.get("totalPrice")) or Decimal("0"),
        session_id=data.get("sessionId"),
        status_reason=data.get("statusReason"),
        created_at=data.get("createdAt"),
        processed_at=data.get("processedAt"),
    )


class CMSClient:
    """
    REST client for the CMS collections used by the booking service.

    One instance lives on ``app.state`` for the lifetime of the app and shares
    a single ``httpx.AsyncClient``. Requests are not retried; transport
    failures and non-2xx answers raise ``UpstreamServiceError``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.cms_api_url).rstrip("/")
        self.token = token if token is not None else settings.cms_api_token
        read_timeout = timeout or settings.cms_timeout_seconds
        self.http = http or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(connect=5.0, read=read_timeout, write=read_timeout, pool=5.0),
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(
        self,
        method: str,
        path: str,
        resource: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
        files: Optional[list] = None,
    ) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = await self.http.request(
                method,
                path,
                params=params,
                json=json,
                files=files,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            metrics_collector.observe_cms_request(method, resource, "error", time.perf_counter() - start)
            logger.error(
                "CMS request failed",
                exc_info=True,
                extra={"method": method, "path": path, "error": str(exc)}
            )
            raise UpstreamServiceError(
                service=SERVICE_NAME,
                detail=f"Failed to reach the content store for {resource}",
                code="CMS_UNAVAILABLE",
            ) from exc

        outcome = "success" if response.is_success else "error"
        metrics_collector.observe_cms_request(method, resource, outcome, time.perf_counter() - start)
        return response

    def _raise_for_status(self, response: httpx.Response, resource: str) -> None:
        if response.is_success:
            return
        logger.error(
            "CMS returned an error status",
            extra={
                "resource": resource,
                "status_code": response.status_code,
                "body": response.text[:500],
            }
        )
        raise UpstreamServiceError(
            service=SERVICE_NAME,
            detail=f"Content store request for {resource} failed",
            code="CMS_ERROR",
            upstream_status=response.status_code,
        )

    async def _list(self, path: str, resource: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        response = await self._request("GET", path, resource, params=params)
        self._raise_for_status(response, resource)
        data = response.json().get("data") or []
        return data if isinstance(data, list) else [data]

    async def get_facility(self, document_id: str) -> Facility:
        """
        Fetch a facility by its public document id.

        Raises:
            NotFoundError: If no facility has that id
            UpstreamServiceError: If the content store fails
        """
        entries = await self._list(
            "/api/facilities",
            "facilities",
            {"filters[documentId][$eq]": document_id, "populate": "*"},
        )
        if not entries:
            raise NotFoundError(resource_type="facility", resource_id=document_id)
        return normalize_facility(entries[0])

    async def list_active_bookings(self, facility_id: int) -> list[Booking]:
        """Bookings on a facility whose status still occupies it."""
        params: dict[str, Any] = {
            "filters[facility][id][$eq]": facility_id,
            "populate": "*",
            "pagination[pageSize]": 1000,
        }
        for index, status in enumerate(INACTIVE_STATUSES):
            params[f"filters[bookingStatus][$notIn][{index}]"] = status
        entries = await self._list("/api/bookings", "bookings", params)
        return [normalize_booking(entry) for entry in entries]

    async def find_bookings(self, **filters: Any) -> list[Booking]:
        """Bookings matching every ``field=value`` equality filter."""
        params: dict[str, Any] = {"populate": "facility"}
        for name, value in filters.items():
            params[f"filters[{name}][$eq]"] = value
        entries = await self._list("/api/bookings", "bookings", params)
        return [normalize_booking(entry) for entry in entries]

    async def latest_booking_number(self, prefix: str) -> Optional[str]:
        """Highest booking number starting with ``prefix``, if any."""
        entries = await self._list(
            "/api/bookings",
            "bookings",
            {
                "filters[bookingNumber][$startsWith]": prefix,
                "sort[0]": "bookingNumber:desc",
                "pagination[pageSize]": 1,
                "fields[0]": "bookingNumber",
            },
        )
        if not entries:
            return None
        return _flatten(entries[0]).get("bookingNumber")

    async def booking_number_exists(self, booking_number: str) -> bool:
        entries = await self._list(
            "/api/bookings",
            "bookings",
            {
                "filters[bookingNumber][$eq]": booking_number,
                "pagination[pageSize]": 1,
                "fields[0]": "bookingNumber",
            },
        )
        return bool(entries)

    async def get_booking(self, document_id: str) -> Booking:
        """
        Raises:
            NotFoundError: If the booking does not exist
        """
        response = await self._request(
            "GET", f"/api/bookings/{document_id}", "bookings", params={"populate": "facility"}
        )
        if response.status_code == 404:
            raise NotFoundError(resource_type="booking", resource_id=document_id)
        self._raise_for_status(response, "bookings")
        return normalize_booking(response.json()["data"])

    async def create_booking(self, payload: dict[str, Any]) -> tuple[Booking, dict[str, Any]]:
        """Persist a new booking; returns the normalised booking and the raw record."""
        response = await self._request("POST", "/api/bookings", "bookings", json={"data": payload})
        self._raise_for_status(response, "bookings")
        raw = response.json()["data"]
        return normalize_booking(raw), raw

    async def update_booking(self, document_id: str, payload: dict[str, Any]) -> tuple[Booking, dict[str, Any]]:
        """
        Raises:
            NotFoundError: If the booking does not exist
        """
        response = await self._request(
            "PUT", f"/api/bookings/{document_id}", "bookings", json={"data": payload}
        )
        if response.status_code == 404:
            raise NotFoundError(resource_type="booking", resource_id=document_id)
        self._raise_for_status(response, "bookings")
        raw = response.json()["data"]
        return normalize_booking(raw), raw

    async def upload_files(self, files: list[FileUpload]) -> list[dict[str, Any]]:
        """
        Upload files to the media library one at a time.

        Returns:
            The uploaded media records (each with at least ``id`` and ``url``)
        """
        uploaded = []
        for upload in files:
            response = await self._request(
                "POST",
                "/api/upload",
                "upload",
                files=[("files", (upload.filename, upload.content, upload.content_type))],
            )
            if not response.is_success:
                logger.error(
                    "File upload failed",
                    extra={"upload_filename": upload.filename, "status_code": response.status_code}
                )
                raise UpstreamServiceError(
                    service=SERVICE_NAME,
                    detail=f"Failed to upload file: {upload.filename}",
                    code="FILE_UPLOAD_ERROR",
                    upstream_status=response.status_code,
                )
            uploaded.extend(response.json())
        return uploaded

    async def ping(self) -> bool:
        """True when the content store answers at all."""
        try:
            response = await self.http.get("/_health", headers=self._headers())
        except httpx.HTTPError:
            return False
        return response.status_code < 500
