"""
Offline verification-log client configuration constants.

Constants are organized into:
- STORAGE: Local persistence location and per-collection schema versions
- REMOTE AUTHORITY: Base URL, endpoint paths and transport timeout
- CACHE POLICY: Bounded DID document cache sizing
- OPERATIONAL: Startup behaviour and admin visibility (env vars)
"""

import os


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# =============================================================================
# STORAGE
# =============================================================================

# SQLite is the expected backend; any SQLAlchemy URL is accepted
DATABASE_URL: str = os.getenv(
    "OVL_DATABASE_URL", "sqlite:///./data/offline_verify.db"
)

# Schema version per independent collection.
# Upgrades are additive only: bump a version when a new table, column or
# index is introduced. Existing tables are never rewritten or dropped.
SCHEMA_VERSIONS: dict[str, int] = {
    "verification_logs": 1,
    "did_cache": 1,
    "revocations": 1,
}


# =============================================================================
# REMOTE AUTHORITY
# =============================================================================

REMOTE_API_BASE: str = os.getenv("OVL_API_BASE", "http://localhost:5000").rstrip("/")

# Timeouts are left to the transport; a timed-out call is treated the
# same as a rejected one
REMOTE_TIMEOUT_SECONDS: float = float(os.getenv("OVL_REMOTE_TIMEOUT", "10.0"))

LOGS_PATH: str = "/api/logs"
REVOCATIONS_PATH: str = "/api/revocations"
VERIFY_PATH: str = "/v1/verify"
CAPABILITIES_PATH: str = "/v1/verify/vc-verification"


# =============================================================================
# CACHE POLICY
# =============================================================================

# Maximum DID documents held locally. Each put that exceeds this evicts
# exactly one entry (the least recently accessed).
DID_CACHE_MAX_ENTRIES: int = int(os.getenv("OVL_DID_CACHE_MAX_ENTRIES", "100"))


# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

# Initial connectivity signal. Later transitions arrive through
# ConnectivityMonitor.set_online() (POST /connectivity).
START_ONLINE: bool = _env_flag("OVL_START_ONLINE", "true")

# Push pending records and pull the revocation list when the client starts
SYNC_ON_STARTUP: bool = _env_flag("OVL_SYNC_ON_STARTUP", "true")
REFRESH_REVOCATIONS_ON_STARTUP: bool = _env_flag(
    "OVL_REFRESH_REVOCATIONS_ON_STARTUP", "true"
)

# Controls whether /admin endpoints are served
ADMIN_ENDPOINT_ENABLED: bool = _env_flag("OVL_ADMIN_ENDPOINT_ENABLED", "true")

# Column order for the tabular log export
CSV_EXPORT_COLUMNS: tuple[str, ...] = (
    "id", "timestamp", "synced", "status", "issuer", "subject", "data",
)
