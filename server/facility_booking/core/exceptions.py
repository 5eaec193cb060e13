"""RFC 9457 problem documents for the booking API.

Besides the standard members every body carries ``success: false``, the
machine readable ``error`` code, a ``message`` and, when known, ``details``.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://utcperlis.gov.my/problems"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ProblemDetailsException(HTTPException):
    """
    Error raised anywhere in the service and rendered as a problem document.

    See https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        code: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        details: Any = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Args:
            status_code: HTTP status of the response
            title: Summary of the problem type
            code: Machine readable error code, e.g. ``TIME_CONFLICT``
            detail: Explanation of this occurrence, also used as ``message``
            type_uri: Problem type URI, ``about:blank#<status>`` when omitted
            instance: URI of this occurrence
            details: Structured context for the caller
            extensions: Extra top-level members
            headers: Response headers
        """
        self.status_code = status_code
        self.title = title
        self.code = code
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.details = details
        self.extensions = extensions or {}

        body: Dict[str, Any] = {
            "type": self.type_uri,
            "title": title,
            "status": status_code,
            "success": False,
            "error": code,
            "message": detail or title,
        }
        if detail:
            body["detail"] = detail
        if instance:
            body["instance"] = instance
        if details is not None:
            body["details"] = details
        body.update(self.extensions)
        self.problem_details = body

        super().__init__(status_code=status_code, detail=body, headers=headers)


class ValidationError(ProblemDetailsException):
    """400 for malformed input; ``violations`` lists the offending fields."""

    def __init__(
        self,
        detail: str = "Invalid input data",
        code: str = "VALIDATION_ERROR",
        violations: Optional[List[Dict[str, Any]]] = None,
        details: Any = None,
    ):
        super().__init__(
            status_code=400,
            title="Validation Error",
            code=code,
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            details=details if details is not None else violations,
            extensions={"violations": violations} if violations else None,
        )


class BookingRuleViolation(ValidationError):
    """A booking request broke one of the lifecycle business rules."""

    def __init__(self, code: str, detail: str, details: Any = None):
        super().__init__(detail=detail, code=code, details=details)
        self.title = "Booking Rule Violation"
        self.problem_details["title"] = self.title
        self.problem_details["type"] = f"{PROBLEM_BASE_URI}/booking-rule-violation"


class NotFoundError(ProblemDetailsException):
    """404 for a facility or booking that does not exist (or is not the caller's)."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        code: Optional[str] = None,
    ):
        if not detail:
            target = f"{resource_type} '{resource_id}'" if resource_id else resource_type
            detail = f"The {target} was not found"

        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Not Found",
            code=code or f"{resource_type.upper()}_NOT_FOUND",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """409 for a taken slot or an illegal status change."""

    def __init__(
        self,
        detail: str = "The request conflicts with the booking's current state",
        code: str = "CONFLICT",
        conflicting_resource: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            status_code=409,
            title="Conflict",
            code=code,
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-conflict",
            details=conflicting_resource,
            extensions={"conflicting_resource": conflicting_resource} if conflicting_resource else None,
        )


class UpstreamServiceError(ProblemDetailsException):
    """The content store or mail relay failed or answered with a non-2xx status."""

    def __init__(
        self,
        service: str,
        detail: str = "An upstream service request failed",
        code: str = "UPSTREAM_ERROR",
        upstream_status: Optional[int] = None,
    ):
        extensions: Dict[str, Any] = {"service": service}
        if upstream_status is not None:
            extensions["upstream_status"] = upstream_status

        super().__init__(
            status_code=500,
            title="Upstream Service Error",
            code=code,
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/upstream-error",
            extensions=extensions,
        )


class InternalServerError(ProblemDetailsException):
    """500 for anything unexpected; ``error_id`` ties the response to the log entry."""

    def __init__(
        self,
        detail: str = "Something went wrong while handling the request",
        error_id: Optional[str] = None,
    ):
        super().__init__(
            status_code=500,
            title="Internal Server Error",
            code="INTERNAL_SERVER_ERROR",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/internal-server-error",
            extensions={
                "error_id": error_id or str(uuid.uuid4()),
                "timestamp": _utc_timestamp(),
            },
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """Render a raised problem as its JSON document."""
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.problem_details),
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert FastAPI body/query validation failures into 400 problems."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    problem = ValidationError(violations=violations)
    problem.problem_details["instance"] = str(request.url.path)
    return await problem_details_handler(request, problem)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log an unhandled exception under a fresh error id and answer with a 500 problem."""
    problem = InternalServerError()
    problem.problem_details["instance"] = str(request.url.path)

    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"error_id": problem.problem_details["error_id"], "path": request.url.path},
    )
    return await problem_details_handler(request, problem)
