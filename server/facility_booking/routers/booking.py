"""Booking router for applicant-facing booking operations."""

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from ..core.dependencies import Bookings
from ..core.exceptions import ProblemDetailsException, ValidationError
from ..schemas.booking import (
    BookingSearchResponse,
    CreateBookingRequest,
    CreateBookingResponse,
    PaymentUploadRequest,
    PaymentUploadResponse,
)
from ..services.booking_service import BookingService
from ..services.cms_client import FileUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])

DOCUMENTS_FIELD = "dokumen_berkaitan"
PAYMENT_PROOF_FIELD = "paymentProof"


def _is_multipart(request: Request) -> bool:
    return request.headers.get("content-type", "").startswith("multipart/form-data")


def _violations(exc: PydanticValidationError) -> list[dict[str, str]]:
    return [
        {"path": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]


async def _read_uploads(values: list[Any]) -> list[FileUpload]:
    files = []
    for value in values:
        if not isinstance(value, UploadFile) or not value.filename:
            continue
        files.append(FileUpload(
            filename=value.filename,
            content=await value.read(),
            content_type=value.content_type or "application/octet-stream",
        ))
    return files


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise ValidationError(detail="Request body must be valid JSON", code="INVALID_JSON")


def _parse_model(model, payload: Any):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(detail="Invalid input data", violations=_violations(e))


async def _parse_create_request(request: Request) -> tuple[CreateBookingRequest, list[FileUpload]]:
    """Booking data from a JSON body, or from the ``data`` field of a multipart form."""
    if not _is_multipart(request):
        return _parse_model(CreateBookingRequest, await _json_body(request)), []

    form = await request.form()
    raw = form.get("data")
    if not raw or not isinstance(raw, str):
        raise ValidationError(detail="Booking data is required", code="MISSING_DATA")
    try:
        payload = json.loads(raw)
    except ValueError:
        raise ValidationError(detail="Booking data must be valid JSON", code="INVALID_JSON")

    booking_request = _parse_model(CreateBookingRequest, payload)
    files = await _read_uploads(form.getlist(DOCUMENTS_FIELD))
    return booking_request, files


@router.post("/create", response_model=CreateBookingResponse, status_code=201)
async def create_booking(
    request: Request,
    service: BookingService = Bookings,
) -> JSONResponse:
    """
    Submit a booking request.

    Accepts either a JSON body or a multipart form carrying the booking as a
    JSON ``data`` field plus supporting documents under ``dokumen_berkaitan``.
    """
    booking_request, files = await _parse_create_request(request)

    try:
        created = await service.create_booking(booking_request, files)
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={
                "facility_id": booking_request.facility_id,
                "session_id": booking_request.session_id,
                "error": str(e)
            },
            exc_info=True
        )
        raise

    response_data = CreateBookingResponse(
        data=created.record,
        booking_number=created.booking_number,
        files_uploaded=created.files_uploaded,
        total_price=float(created.total_price),
    )
    return JSONResponse(
        status_code=201,
        content=response_data.model_dump(mode="json", by_alias=True)
    )


@router.get("/search", response_model=BookingSearchResponse)
async def search_booking(
    email: str = Query(..., min_length=1),
    booking_id: str = Query(..., alias="id", min_length=1),
    service: BookingService = Bookings,
) -> JSONResponse:
    """Look up a booking by booking number or numeric id, scoped to the applicant's e-mail."""
    booking = await service.search_booking(email, booking_id)
    response_data = BookingSearchResponse(booking=booking.to_summary())
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json", by_alias=True)
    )


@router.post("/payment-upload", response_model=PaymentUploadResponse)
async def payment_upload(
    request: Request,
    service: BookingService = Bookings,
) -> JSONResponse:
    """
    Submit proof of payment for a booking awaiting payment.

    Multipart requests carry ``bookingId``, ``email`` and the ``paymentProof``
    file; JSON requests carry a ``paymentProof`` reference instead.
    """
    files: list[FileUpload] = []
    proof_reference: Optional[str] = None

    if _is_multipart(request):
        form = await request.form()
        upload = _parse_model(PaymentUploadRequest, {
            "bookingId": form.get("bookingId"),
            "email": form.get("email"),
        })
        files = await _read_uploads(form.getlist(PAYMENT_PROOF_FIELD))
        if not files:
            raise ValidationError(
                detail="Payment proof file is required",
                code="MISSING_FILE",
                violations=[{"path": PAYMENT_PROOF_FIELD, "message": "File is required"}],
            )
    else:
        upload = _parse_model(PaymentUploadRequest, await _json_body(request))
        proof_reference = upload.payment_proof

    updated = await service.submit_payment_proof(
        upload.booking_id, upload.email, files=files, proof_reference=proof_reference
    )

    response_data = PaymentUploadResponse(data={
        "bookingId": updated.public_id,
        "bookingStatus": updated.booking_status.value,
        "paymentStatus": updated.payment_status.value,
    })
    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(by_alias=True)
    )
