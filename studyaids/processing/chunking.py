"""
Text chunking for the summary pipeline.

Long documents are summarized slice by slice and then merged. Slices are
fixed-size character windows, in document order, without overlap:

    split_fixed("abcdefgh", 3)  →  ["abc", "def", "gh"]

Fixed windows (rather than sentence-aware ones) keep the number of upstream
calls predictable: ceil(len(text) / size), which is what the spread
scheduler and the rate window budget against. A sentence cut at a boundary
costs little here since every partial summary is merged afterwards.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_CHARS = 8000


def split_fixed(text: str, size: int = DEFAULT_CHUNK_CHARS) -> list[str]:
    """
    Cut `text` into consecutive slices of at most `size` characters.

    Joining the result gives back `text` exactly. Empty text yields no slices.
    """
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    if not text:
        return []
    slices = [text[i:i + size] for i in range(0, len(text), size)]
    logger.debug("split_fixed | chars=%d size=%d slices=%d", len(text), size, len(slices))
    return slices
