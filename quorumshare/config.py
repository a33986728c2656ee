"""Global configuration for quorumshare."""

import os

# ---------- GF(2^8) field parameters ----------
# AES / Rijndael reduction polynomial x^8 + x^4 + x^3 + x + 1.
# Shares are only interoperable between implementations using the same
# polynomial and the same identifier assignment (1..n).
GF_REDUCTION_POLY = 0x11B
GF_GENERATOR = 0x03  # primitive element for 0x11B

# ---------- Sharing bounds ----------
MIN_SHARES = 2
MAX_SHARES = 255     # one share per nonzero field element
MIN_THRESHOLD = 2
MAX_THRESHOLD = 255

# ---------- Share service ----------
# Caps request bodies on the HTTP surface only; the library itself
# accepts any non-empty secret.
MAX_SECRET_BYTES = int(os.environ.get("QUORUMSHARE_MAX_SECRET_BYTES", "65536"))
# Upper bound on field operations per request: L * shares * threshold for
# a split, m * m + L * m for a combine of m shares of length L + 1.
# Roughly 1s of CPU at the default.
MAX_WORK_PER_REQUEST = int(os.environ.get("QUORUMSHARE_MAX_WORK", "4000000"))
DEFAULT_MAX_REQUESTS_PER_MINUTE = int(
    os.environ.get("QUORUMSHARE_MAX_REQUESTS_PER_MINUTE", "120")
)
# Rate-limit buckets kept in memory; idle full buckets are dropped first.
MAX_TRACKED_CLIENTS = int(os.environ.get("QUORUMSHARE_MAX_TRACKED_CLIENTS", "10000"))
DEFAULT_CLIENT_ID = "anonymous"

# ---------- Client / demo ----------
SERVICE_URL = os.environ.get("QUORUMSHARE_SERVICE_URL", "http://localhost:8000")
LOG_LEVEL = os.environ.get("QUORUMSHARE_LOG_LEVEL", "WARNING")
