# clinicdesk/errors.py
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ClinicError(Exception):
    """Base for every error the core raises. Carries a stable `kind` for clients."""
    kind = "internal"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(ClinicError):
    kind = "unauthorized"
    status_code = 401
    default_message = "Unauthorized request"


class TermsNotAccepted(ClinicError):
    kind = "terms_not_accepted"
    status_code = 403
    default_message = "Please accept the terms and conditions to continue"


class NotFound(ClinicError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class NoAppointment(NotFound):
    default_message = "No appointment to attend"


class NoCheckInFound(NotFound):
    default_message = "Check-in not found for today"


class ValidationError(ClinicError):
    kind = "validation_error"
    status_code = 400
    default_message = "Invalid input"


class InvalidTransition(ClinicError):
    kind = "invalid_transition"
    status_code = 400
    default_message = "Invalid appointment status transition"


class FutureAppointmentError(ClinicError):
    kind = "future_appointment"
    status_code = 400
    default_message = "Cannot modify future appointments"


class Conflict(ClinicError):
    kind = "conflict"
    status_code = 409
    default_message = "Resource already exists"


class AlreadyCheckedIn(Conflict):
    default_message = "Already checked in today"


class AlreadyCheckedOut(Conflict):
    default_message = "Already checked out today"


class GenerationExhausted(ClinicError):
    kind = "generation_exhausted"
    status_code = 503
    default_message = "Could not generate a unique identifier"


class Internal(ClinicError):
    pass


def error_body(kind: str, message: str, **extra) -> dict:
    return {"status": "error", "kind": kind, "error": message, **extra}


async def clinic_error_handler(request: Request, exc: ClinicError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.message))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=error_body(ValidationError.kind, "Request validation failed", details=jsonable_encoder(exc.errors())),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("ERROR: Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(Internal.kind, Internal.default_message))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ClinicError, clinic_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
