"""Typed domain errors raised by the reconciliation paths."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from http import HTTPStatus
from typing import TYPE_CHECKING, Final
from uuid import uuid4

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_LANGUAGE: Final[str] = "en"


class ErrorKind(StrEnum):
    """Stable error codes surfaced to callers."""

    INVALID_REQUEST = "invalid-request"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not-found"
    TEMPORARILY_UNAVAILABLE = "temporarily-unavailable"
    EXTERNAL_INTERNAL_ERROR = "external-internal-error"
    UNKNOWN_EXTERNAL_ERROR = "unknown-external-error"
    SYNC_CONFLICT = "sync-conflict"
    MISSING_OWNER_HEADER = "missing-owner-header"
    UNEXPECTED_ERROR = "unexpected-error"


@dataclass(frozen=True, slots=True)
class ErrorSpec:
    template: str
    http_status: HTTPStatus
    log_level: int


ERROR_SPECS: Final[Mapping[ErrorKind, ErrorSpec]] = {
    ErrorKind.INVALID_REQUEST: ErrorSpec(
        "Vendor rejected the subscription request (customerId={customerId})",
        HTTPStatus.BAD_REQUEST,
        logging.WARNING,
    ),
    ErrorKind.FORBIDDEN: ErrorSpec(
        "Access to vendor subscriptions is forbidden (customerId={customerId})",
        HTTPStatus.FORBIDDEN,
        logging.WARNING,
    ),
    ErrorKind.NOT_FOUND: ErrorSpec(
        "Customer not found at the subscription vendor (customerId={customerId})",
        HTTPStatus.NOT_FOUND,
        logging.WARNING,
    ),
    ErrorKind.TEMPORARILY_UNAVAILABLE: ErrorSpec(
        "Subscriptions are temporarily unavailable, retry later (customerId={customerId})",
        HTTPStatus.CONFLICT,
        logging.WARNING,
    ),
    ErrorKind.EXTERNAL_INTERNAL_ERROR: ErrorSpec(
        "Subscription vendor failed internally (customerId={customerId})",
        HTTPStatus.INTERNAL_SERVER_ERROR,
        logging.WARNING,
    ),
    ErrorKind.UNKNOWN_EXTERNAL_ERROR: ErrorSpec(
        "Subscription vendor returned an unexpected response "
        "(customerId={customerId}, status={statusCode})",
        HTTPStatus.BAD_GATEWAY,
        logging.WARNING,
    ),
    ErrorKind.SYNC_CONFLICT: ErrorSpec(
        "Subscriptions changed concurrently, sync aborted (customerId={customerId})",
        HTTPStatus.CONFLICT,
        logging.WARNING,
    ),
    ErrorKind.MISSING_OWNER_HEADER: ErrorSpec(
        "Request is missing the {header} header",
        HTTPStatus.BAD_REQUEST,
        logging.INFO,
    ),
    ErrorKind.UNEXPECTED_ERROR: ErrorSpec(
        "Unexpected error while processing subscriptions",
        HTTPStatus.INTERNAL_SERVER_ERROR,
        logging.ERROR,
    ),
}


def render_template(template: str, params: Mapping[str, object]) -> str:
    """Substitute ``{name}`` placeholders, leaving unknown ones in place."""

    result = template
    for key, value in params.items():
        result = result.replace(f"{{{key}}}", str(value))
    return result


class SubscriptionError(Exception):
    """Base class for errors that carry an error kind and an HTTP status."""

    def __init__(
        self,
        kind: ErrorKind,
        *,
        params: Mapping[str, object] | None = None,
        http_status: HTTPStatus | None = None,
        log_level: int | None = None,
    ) -> None:
        spec = ERROR_SPECS[kind]
        self.kind = kind
        self.params: dict[str, object] = dict(params or {})
        self.http_status = http_status or spec.http_status
        self.log_level = spec.log_level if log_level is None else log_level
        self.message = render_template(spec.template, self.params)
        super().__init__(self.message)

    @property
    def customer_id(self) -> str | None:
        value = self.params.get("customerId")
        return None if value is None else str(value)

    def to_response(self, *, error_id: str | None = None) -> dict[str, object]:
        return {
            "errorId": error_id or uuid4().hex,
            "errorCode": self.kind.value,
            "level": logging.getLevelName(self.log_level),
            "messages": {DEFAULT_LANGUAGE: self.message},
        }


class SubscriptionConflictError(SubscriptionError):
    """Raised when a cycle's commit hits the public id uniqueness constraint."""

    def __init__(self, customer_id: str, *, public_ids: tuple[object, ...] = ()) -> None:
        super().__init__(ErrorKind.SYNC_CONFLICT, params={"customerId": customer_id})
        self.public_ids = public_ids


class VendorCallError(RuntimeError):
    """Raw vendor failure before it is classified into a domain error."""

    def __init__(self, status_code: int, message: str, *, body: str = "") -> None:
        super().__init__(f"Vendor call failed: [{status_code}] {message}")
        self.status_code = status_code
        self.status_message = message
        self.body = body


class VendorPayloadError(VendorCallError):
    """Raised when a successful vendor response carries a malformed batch."""

    def __init__(self, message: str, *, body: str = "") -> None:
        super().__init__(HTTPStatus.BAD_GATEWAY, message, body=body)
