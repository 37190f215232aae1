"""
Spread Scheduler — size-proportional pacing between generation calls.

Large documents turn into many chunk calls; firing them back to back is what
trips upstream throttling. The spread adds artificial pacing that grows with
the input size:

    delay(size) = 0                                   size <= min_chars
                = max_delay × (size - min) / (max - min)   min < size < max
                = max_delay                           size >= max_chars

For chunked work the total is divided evenly across chunk transitions (never
before the first chunk). When the spread is zero (disabled, or a small input)
the fixed per-chunk pause applies instead. The two never stack.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SpreadScheduler:
    enabled:        bool = True
    min_chars:      int  = 30_000
    max_chars:      int  = 150_000
    max_delay_ms:   int  = 20_000
    chunk_pause_ms: int  = 1_200

    def compute_delay(self, input_size_chars: int) -> float:
        """Total pacing delay in milliseconds for an input of this size."""
        if not self.enabled or input_size_chars <= self.min_chars:
            return 0.0
        if input_size_chars >= self.max_chars or self.max_chars <= self.min_chars:
            return float(self.max_delay_ms)
        fraction = (input_size_chars - self.min_chars) / (self.max_chars - self.min_chars)
        return self.max_delay_ms * fraction

    def pause_between_chunks(self, input_size_chars: int, chunk_count: int) -> float:
        """Milliseconds to wait before each chunk after the first."""
        if chunk_count <= 1:
            return 0.0
        total = self.compute_delay(input_size_chars)
        if total > 0:
            return total / (chunk_count - 1)
        return float(self.chunk_pause_ms)

    def pause_before_request(self, input_size_chars: int) -> float:
        """Milliseconds to wait before a single-call request (flashcards, quiz)."""
        return self.compute_delay(input_size_chars)
