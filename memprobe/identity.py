"""
memprobe.identity

AUTHOR: carter-vin

Host identity attached to every emitted value
- default: hostname
- override via env var (multi-host simulation on one laptop, stable demo IDs)
"""

from __future__ import annotations

import os
import socket

HOSTNAME_ENV = "MEMPROBE_HOSTNAME"
FALLBACK_HOSTNAME = "localhost"


def resolve_host() -> str:
    """
    Env override first, then socket.gethostname(), then a fixed fallback
    """
    override = os.environ.get(HOSTNAME_ENV, "").strip()
    if override:
        return override

    try:
        hostname = socket.gethostname().strip()
    except OSError:
        hostname = ""

    return hostname or FALLBACK_HOSTNAME
