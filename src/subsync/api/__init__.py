"""HTTP surface for subscription reads and synchronisation."""

from __future__ import annotations

from .app import create_app
from .routes import OWNER_HEADER

__all__ = ["OWNER_HEADER", "create_app"]
