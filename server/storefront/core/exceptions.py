"""API errors rendered as RFC 9457 Problem Details."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://storefront.example.com/problems"
PROBLEM_MEDIA_TYPE = "application/problem+json"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _problem_body(status: int, title: str, slug: str, detail: Optional[str], **members) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "type": f"{PROBLEM_BASE_URI}/{slug}",
        "title": title,
        "status": status,
    }
    if detail:
        body["detail"] = detail
    body.update({key: value for key, value in members.items() if value is not None})
    return body


class ProblemDetailsException(HTTPException):
    """
    Base class for errors that leave the API as a Problem Details document.

    Subclasses set ``status``, ``title`` and ``slug``; per-occurrence data is
    passed as extension members and ends up at the top level of the body.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    status: int = 500
    title: str = "Internal Server Error"
    slug: str = "internal-server-error"

    def __init__(
        self,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **extensions: Any,
    ):
        self.problem_details = _problem_body(
            self.status, self.title, self.slug, detail, instance=instance, **extensions
        )
        super().__init__(status_code=self.status, detail=self.problem_details, headers=headers)


class ValidationError(ProblemDetailsException):
    """Business-rule validation failed; ``violations`` lists ``{path, message}`` pairs."""

    status = 400
    title = "Validation Error"
    slug = "validation-error"

    def __init__(
        self,
        detail: str = "The request data failed validation",
        violations: Optional[list[Dict[str, str]]] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(detail, instance, violations=violations or None)


class AuthenticationError(ProblemDetailsException):
    """Missing or unusable bearer token."""

    status = 401
    title = "Authorization Required"
    slug = "authorization-required"

    def __init__(self, detail: str = "Authorization credentials are required", instance: Optional[str] = None):
        super().__init__(detail, instance, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(ProblemDetailsException):
    """Authenticated, but the caller lacks the role the operation needs."""

    status = 403
    title = "Access Forbidden"
    slug = "access-forbidden"

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_role: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(detail, instance, required_role=required_role)


class NotFoundError(ProblemDetailsException):
    """Unknown, malformed or hidden resource ID."""

    status = 404
    title = "Resource Not Found"
    slug = "resource-not-found"

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            where = f" with ID '{resource_id}'" if resource_id else ""
            detail = f"The requested {resource_type}{where} could not be found"
        super().__init__(detail, instance, resource_type=resource_type, resource_id=resource_id)


class ConflictError(ProblemDetailsException):
    """The request clashes with current state; ``code`` names the rule that was hit."""

    status = 409
    title = "Resource Conflict"
    slug = "resource-conflict"

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(detail, instance, conflicting_resource=conflicting_resource or None, code=code)


class InvalidStatusTransitionError(ConflictError):
    """A booking or order status change that its state machine does not allow."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        current_status: str,
        requested_status: str,
        allowed: Optional[list[str]] = None,
    ):
        super().__init__(
            detail=f"Cannot move {resource_type} {resource_id} from '{current_status}' to '{requested_status}'",
            conflicting_resource={
                "id": resource_id,
                "current_status": current_status,
                "requested_status": requested_status,
                "allowed_statuses": allowed or [],
            },
            code="INVALID_STATUS_TRANSITION",
        )


class InternalServerError(ProblemDetailsException):
    """Raised by routers after logging an unexpected failure."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(detail, instance, error_id=error_id or str(uuid.uuid4()), timestamp=_utc_timestamp())


def _problem_response(body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=body["status"],
        content=body,
        headers=headers,
        media_type=PROBLEM_MEDIA_TYPE,
    )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """Render a raised ProblemDetailsException."""
    return _problem_response(exc.problem_details, exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body/query validation failures with one violation per field."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    body = _problem_body(
        422,
        ValidationError.title,
        ValidationError.slug,
        "The request data failed validation",
        instance=str(request.url.path),
        violations=violations,
    )
    return _problem_response(body)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort handler for exceptions nothing else caught.

    The error ID in the body is also logged so support can find the traceback.
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"error_id": error_id, "path": request.url.path},
    )

    body = _problem_body(
        500,
        InternalServerError.title,
        InternalServerError.slug,
        "An unexpected error occurred while processing the request",
        instance=str(request.url.path),
        error_id=error_id,
        timestamp=_utc_timestamp(),
    )
    return _problem_response(body)
