"""
Rep tempo tracking.

Reps are grouped into batches (30 by default). The batch clock starts on the
first rep of a batch (1, 31, 61, ...) and on the last rep (30, 60, ...) the
batch rate is converted to beats per minute. Each rep also gets an
alternating beat index so the client can alternate its two cue sounds.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .config import TEMPO_BATCH_SIZE
from .events import TempoUpdated


def beat_for(rep_index: int) -> int:
    return (rep_index - 1) % 2


@dataclass(frozen=True)
class TempoState:
    batch_size: int = TEMPO_BATCH_SIZE
    batch_start_ms: Optional[int] = None
    latest_bpm: int = 0

    def record(self, rep_index: int, now_ms: int) -> Tuple["TempoState", Optional[TempoUpdated]]:
        """Account for a counted rep; returns an event when a batch closes."""
        state = self
        if (rep_index - 1) % self.batch_size == 0:
            state = replace(state, batch_start_ms=now_ms)

        if rep_index > 0 and rep_index % self.batch_size == 0 and state.batch_start_ms is not None:
            elapsed_ms = now_ms - state.batch_start_ms
            if elapsed_ms > 0:
                bpm = int(round(self.batch_size / elapsed_ms * 60000.0))
                state = replace(state, latest_bpm=bpm)
                return state, TempoUpdated(bpm=bpm, batch_size=self.batch_size)
        return state, None

    def cleared(self) -> "TempoState":
        return TempoState(batch_size=self.batch_size)
