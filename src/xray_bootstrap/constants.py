"""Application-wide constants for xray-bootstrap.

Constants that define application behavior.
For per-deployment overrides (domain, UUID, path, ...), see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Host contract
    "HOST_IP_ENV",
    "HOST_PORT_ENV",
    # Identity / ISP lookup
    "ACCESS_PATH_HASH_LENGTH",
    "ISP_LOOKUP_MAX_ATTEMPTS",
    "ISP_LOOKUP_TIMEOUT_SECONDS",
    "ISP_LOOKUP_BACKOFF_SECONDS",
    "ISP_UNKNOWN_LABEL",
    "BROWSER_USER_AGENT",
    # Artifact provisioning
    "XRAY_RELEASE_BASE_URL",
    "XRAY_ASSET_BY_MACHINE",
    "XRAY_ENTRY_NAME",
    "DOWNLOAD_MAX_REDIRECTS",
    "DOWNLOAD_TIMEOUT_SECONDS",
    "EXTRACT_CHUNK_SIZE",
    "EXECUTABLE_MODE",
    # Generated files (relative to work dir)
    "ARCHIVE_FILENAME",
    "ENGINE_BINARY_RELPATH",
    "ENGINE_CONFIG_FILENAME",
    "SUBSCRIPTION_FILENAME",
    # Engine runtime
    "ENGINE_ENV_OVERRIDES",
    "ENGINE_BUFFER_SIZE_KB",
    "ENGINE_CONN_IDLE_SECONDS",
    "ENGINE_STOP_TIMEOUT_SECONDS",
    # Subscription link
    "SUBSCRIPTION_TLS_PORT",
    # Defaults
    "DEFAULT_DOMAIN",
    "DEFAULT_NODE_NAME",
]

# ============================================================================
# Application Identity
# ============================================================================

APP_NAME: str = "xray-bootstrap"

# ============================================================================
# Host Contract
# ============================================================================

# Injected by the panel (Pterodactyl) into every server container.
HOST_IP_ENV: str = "SERVER_IP"
HOST_PORT_ENV: str = "SERVER_PORT"

# ============================================================================
# Identity / ISP Lookup
# ============================================================================

# "/" + first 8 hex chars of md5(uuid)
ACCESS_PATH_HASH_LENGTH: int = 8

# Round-robin over the ISP sources, fixed backoff between attempts.
# Worst case: 3 * (5s + 1s) = 18s before falling back to "Unknown".
ISP_LOOKUP_MAX_ATTEMPTS: int = 3
ISP_LOOKUP_TIMEOUT_SECONDS: float = 5.0
ISP_LOOKUP_BACKOFF_SECONDS: float = 1.0
ISP_UNKNOWN_LABEL: str = "Unknown"

# Some lookup endpoints reject non-browser clients
BROWSER_USER_AGENT: str = "Mozilla/5.0"

# ============================================================================
# Artifact Provisioning
# ============================================================================

XRAY_RELEASE_BASE_URL: str = "https://github.com/XTLS/Xray-core/releases/latest/download"

# platform.machine() value -> release asset suffix (Xray-linux-<suffix>.zip)
XRAY_ASSET_BY_MACHINE: dict[str, str] = {
    "x86_64": "64",
    "amd64": "64",
    "aarch64": "arm64-v8a",
    "arm64": "arm64-v8a",
}

# Name of the only archive entry we extract
XRAY_ENTRY_NAME: str = "xray"

# GitHub "latest" redirects to the tagged release, then to the CDN
DOWNLOAD_MAX_REDIRECTS: int = 5
DOWNLOAD_TIMEOUT_SECONDS: float = 60.0

# Keep the working set small on 64MB containers
EXTRACT_CHUNK_SIZE: int = 64 * 1024

EXECUTABLE_MODE: int = 0o755

# ============================================================================
# Generated Files
# ============================================================================

ARCHIVE_FILENAME: str = "xray.zip"
ENGINE_BINARY_RELPATH: str = "xray/xray"
ENGINE_CONFIG_FILENAME: str = "config.json"
SUBSCRIPTION_FILENAME: str = "vless_xray_links.txt"

# ============================================================================
# Engine Runtime
# ============================================================================

# Go runtime limits for the engine process (64MB container)
ENGINE_ENV_OVERRIDES: dict[str, str] = {"GOMEMLIMIT": "12MiB", "GOGC": "10"}

# Policy level 0: per-connection buffer (KB) and idle timeout
ENGINE_BUFFER_SIZE_KB: int = 64
ENGINE_CONN_IDLE_SECONDS: int = 120

# Grace period between SIGTERM and SIGKILL
ENGINE_STOP_TIMEOUT_SECONDS: float = 5.0

# ============================================================================
# Subscription Link
# ============================================================================

# Clients reach the node through the CDN on 443, not the panel port
SUBSCRIPTION_TLS_PORT: int = 443

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_DOMAIN: str = "example.com"
DEFAULT_NODE_NAME: str = "Panel"
