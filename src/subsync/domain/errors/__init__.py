"""Domain error taxonomy and vendor failure classification."""

from __future__ import annotations

from .classifier import DEFAULT_HANDLERS, DuplicateHandlerError, ErrorClassifier, StatusHandler
from .kinds import (
    ERROR_SPECS,
    ErrorKind,
    ErrorSpec,
    SubscriptionConflictError,
    SubscriptionError,
    VendorCallError,
    VendorPayloadError,
    render_template,
)

__all__ = [
    "DEFAULT_HANDLERS",
    "ERROR_SPECS",
    "DuplicateHandlerError",
    "ErrorClassifier",
    "ErrorKind",
    "ErrorSpec",
    "StatusHandler",
    "SubscriptionConflictError",
    "SubscriptionError",
    "VendorCallError",
    "VendorPayloadError",
    "render_template",
]
