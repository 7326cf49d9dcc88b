"""Classify vendor failures into domain errors.

The dispatch table is keyed by the vendor's HTTP status code and is built once,
at construction. Registering two handlers for one status code is a startup
configuration error, so the classifier refuses to build rather than silently
picking one of them.
"""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING, Final

from subsync.config.errors import ConfigurationError

from .kinds import ErrorKind, SubscriptionError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .kinds import VendorCallError

log = getLogger(__name__)


class DuplicateHandlerError(ConfigurationError):
    """Raised when two handlers claim the same vendor status code."""

    def __init__(self, status_code: int, existing: StatusHandler, duplicate: StatusHandler) -> None:
        super().__init__(
            f"Duplicate error handler for vendor status {status_code}: "
            f"{existing.kind} and {duplicate.kind}"
        )
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class StatusHandler:
    """Map one vendor status code onto an error kind."""

    status_code: int
    kind: ErrorKind
    http_status: HTTPStatus | None = None

    def build(self, params: Mapping[str, object]) -> SubscriptionError:
        return SubscriptionError(self.kind, params=params, http_status=self.http_status)


DEFAULT_HANDLERS: Final[tuple[StatusHandler, ...]] = (
    StatusHandler(HTTPStatus.BAD_REQUEST, ErrorKind.INVALID_REQUEST),
    StatusHandler(HTTPStatus.FORBIDDEN, ErrorKind.FORBIDDEN),
    StatusHandler(HTTPStatus.NOT_FOUND, ErrorKind.NOT_FOUND),
    StatusHandler(HTTPStatus.CONFLICT, ErrorKind.TEMPORARILY_UNAVAILABLE),
    StatusHandler(HTTPStatus.INTERNAL_SERVER_ERROR, ErrorKind.EXTERNAL_INTERNAL_ERROR),
    StatusHandler(
        HTTPStatus.SERVICE_UNAVAILABLE,
        ErrorKind.TEMPORARILY_UNAVAILABLE,
        http_status=HTTPStatus.SERVICE_UNAVAILABLE,
    ),
)


class ErrorClassifier:
    """Translate :class:`VendorCallError` into :class:`SubscriptionError`."""

    def __init__(self, handlers: Iterable[StatusHandler] = DEFAULT_HANDLERS) -> None:
        table: dict[int, StatusHandler] = {}
        for handler in handlers:
            existing = table.get(handler.status_code)
            if existing is not None:
                raise DuplicateHandlerError(handler.status_code, existing, handler)
            table[handler.status_code] = handler
        self._handlers = table
        log.debug(
            "Registered %d vendor error handlers: %s",
            len(table),
            ", ".join(f"{code}->{handler.kind}" for code, handler in sorted(table.items())),
        )

    @property
    def status_codes(self) -> frozenset[int]:
        return frozenset(self._handlers)

    def classify(
        self,
        error: VendorCallError,
        *,
        customer_id: str,
        **context: object,
    ) -> SubscriptionError:
        params: dict[str, object] = {
            "customerId": customer_id,
            "statusCode": error.status_code,
            **context,
        }
        handler = self._handlers.get(error.status_code)
        if handler is None:
            log.warning(
                "No handler for vendor status %s, using %s",
                error.status_code,
                ErrorKind.UNKNOWN_EXTERNAL_ERROR,
            )
            classified = SubscriptionError(ErrorKind.UNKNOWN_EXTERNAL_ERROR, params=params)
        else:
            classified = handler.build(params)
        classified.__cause__ = error
        return classified
