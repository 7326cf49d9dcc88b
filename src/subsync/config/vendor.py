"""Subscription vendor configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int, optional_env_int, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_VENDOR_TIMEOUT_MS = 5_000
DEFAULT_VENDOR_SYNC_RETRIES = 2


@dataclass(frozen=True, slots=True)
class VendorConfig:
    """Holds the vendor gateway configuration.

    ``refresh`` drives the background path, which must make exactly one attempt
    per cycle, so it never carries a retry policy. ``sync`` drives the
    synchronous full-sync path.
    """

    base_url: str
    refresh: ResilienceConfig
    sync: ResilienceConfig


def get_vendor_config() -> VendorConfig:
    values = require_env_vars(("VENDOR_BASE_URL",))
    base_url = values["VENDOR_BASE_URL"].rstrip("/")
    timeout_ms = env_int("VENDOR_TIMEOUT_MS", DEFAULT_VENDOR_TIMEOUT_MS, minimum=1)
    sync_retries = env_int("VENDOR_SYNC_RETRIES", DEFAULT_VENDOR_SYNC_RETRIES)
    calls_per_second = optional_env_int("VENDOR_MAX_CALLS_PER_SECOND", None, minimum=1)
    ratelimit = (
        RateLimit(max_calls=calls_per_second, per_seconds=1.0) if calls_per_second else None
    )

    refresh = ResilienceConfig(
        name="vendor-refresh",
        base_url=base_url,
        timeout_seconds=timeout_ms / 1000,
        retry=None,
        ratelimit=ratelimit,
    )
    sync = ResilienceConfig(
        name="vendor-sync",
        base_url=base_url,
        timeout_seconds=timeout_ms / 1000,
        retry=RetryPolicy(total=sync_retries) if sync_retries else None,
        ratelimit=ratelimit,
    )
    return VendorConfig(base_url=base_url, refresh=refresh, sync=sync)
