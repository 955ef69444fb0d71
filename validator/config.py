"""Configuration settings for validation runs."""

import os

from common.constants import DEFAULT_REPO_PATH, DEFAULT_WALK_CONCURRENCY


REPO_PATH = os.environ.get("BLOCKCHECK_REPO_PATH", DEFAULT_REPO_PATH)

WALK_CONCURRENCY = int(os.environ.get("BLOCKCHECK_WALK_CONCURRENCY", str(DEFAULT_WALK_CONCURRENCY)))

HASH_ON_READ = os.environ.get("BLOCKCHECK_HASH_ON_READ", "false").lower() in ("1", "true", "yes")

_default_timeout = os.environ.get("BLOCKCHECK_DEFAULT_TIMEOUT", "")
DEFAULT_TIMEOUT = float(_default_timeout) if _default_timeout else None
