"""Application wiring entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from subsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemySubscriptionUnitOfWork,
    is_started,
    startup,
)
from subsync.adapters.vendor import build_http_vendor_gateway
from subsync.config import get_sync_config, get_vendor_config
from subsync.domain.reconciliation import (
    BackgroundRefresher,
    ConsistencyController,
    IsolationMode,
)
from subsync.domain.subscription_sync import SubscriptionSync

if TYPE_CHECKING:
    from subsync.config import SyncConfig, VendorConfig
    from subsync.domain.ports import UnitOfWorkFactory, VendorGateway

log = getLogger(__name__)


def build_subscription_sync(
    *,
    sync_config: SyncConfig | None = None,
    vendor_config: VendorConfig | None = None,
    refresh_gateway: VendorGateway | None = None,
    sync_gateway: VendorGateway | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> SubscriptionSync:
    """Wire the reconciliation services using the configured adapters.

    Any collaborator passed in replaces the default adapter; the store adapter
    is started on demand when the default unit of work is used.
    """

    settings = sync_config or get_sync_config()
    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemySubscriptionUnitOfWork
    if refresh_gateway is None or sync_gateway is None:
        vendor = vendor_config or get_vendor_config()
        refresh_gateway = refresh_gateway or build_http_vendor_gateway("refresh", config=vendor)
        sync_gateway = sync_gateway or build_http_vendor_gateway("sync", config=vendor)

    controller = ConsistencyController(
        unit_of_work_factory,
        isolation=IsolationMode(settings.isolation),
        batch_size=settings.batch_size,
    )
    refresher = BackgroundRefresher(
        refresh_gateway,
        controller,
        timeout_seconds=settings.refresh_timeout_seconds,
        max_concurrency=settings.refresh_max_concurrency,
    )
    log.info(
        "Subscription sync wired: isolation=%s, batch_size=%s, refresh_timeout=%sms, "
        "refresh_concurrency=%s",
        settings.isolation,
        settings.batch_size,
        settings.refresh_timeout_ms,
        settings.refresh_max_concurrency,
    )
    return SubscriptionSync(gateway=sync_gateway, controller=controller, refresher=refresher)
