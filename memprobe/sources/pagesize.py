"""
memprobe.sources.pagesize
AUTHOR: carter-vin

Page size, resolved once per process
"""

from __future__ import annotations

import os
from typing import Optional

from memprobe.sources.base import ProbeInitError

# Sentinel for sources whose counters are already in bytes
PAGE_SIZE_NOT_NEEDED = None


def resolve_page_size(required: bool = True) -> Optional[int]:
    """
    Return bytes per page, or PAGE_SIZE_NOT_NEEDED when not required

    Raises ProbeInitError when the platform cannot tell us, or says <= 0
    """
    if not required:
        return PAGE_SIZE_NOT_NEEDED

    try:
        pagesize = int(os.sysconf("SC_PAGE_SIZE"))
    except (AttributeError, ValueError, OSError) as e:
        raise ProbeInitError(f"page size unavailable: {e}") from e

    if pagesize <= 0:
        raise ProbeInitError(f"Invalid pagesize: {pagesize}")

    return pagesize
