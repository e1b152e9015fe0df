"""Prometheus metrics for the authorization code lifecycle.

All metrics are defined here so the inventory lives in one place; the
modules that own the behaviour import and increment them.

Useful queries:
  rate(auth_code_redemptions_total{result="client_mismatch"}[5m])
    → code-injection attempts; alert on anything above zero.
  auth_code_collisions_total
    → must stay at zero.  A non-zero value means the generator or the
      store key derivation is broken.
  rate(auth_code_store_errors_total[5m])
    → backend trouble; pairs with /ready returning 503.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

AUTH_CODES_ISSUED = Counter(
    "auth_codes_issued_total",
    "Authorization codes successfully stored by create()",
)

AUTH_CODE_REDEMPTIONS = Counter(
    "auth_code_redemptions_total",
    "Redemption attempts by outcome",
    ["result"],  # "redeemed", "not_found", "client_mismatch"
)

AUTH_CODE_COLLISIONS = Counter(
    "auth_code_collisions_total",
    "Generated codes rejected by the store as duplicates",
)

AUTH_CODES_PURGED = Counter(
    "auth_codes_purged_total",
    "Expired authorization codes removed by the sweeper",
)

AUTH_CODE_STORE_ERRORS = Counter(
    "auth_code_store_errors_total",
    "Store operations that failed or timed out",
    ["operation"],  # "put", "take", "purge"
)

SWEEPER_LAST_RUN = Gauge(
    "auth_code_sweeper_last_run_timestamp_seconds",
    "Unix time of the last completed expiry sweep",
)
