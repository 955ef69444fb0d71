"""Configuration settings for the validation HTTP service."""

import os


SERVICE_HOST = os.environ.get("BLOCKCHECK_HOST", "0.0.0.0")

SERVICE_PORT = int(os.environ.get("BLOCKCHECK_PORT", "8400"))

# Upper bound applied to client-supplied timeouts, in seconds.
MAX_REQUEST_TIMEOUT = float(os.environ.get("BLOCKCHECK_MAX_REQUEST_TIMEOUT", "300"))
