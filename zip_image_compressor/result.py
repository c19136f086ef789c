"""
Result Selector - decides which round is delivered and summarizes the run.
"""

import logging
from typing import List, Optional, Sequence

from .config import ACCEPT_LOWER_BOUND
from .models import (
    CompressionResult,
    CompressionStats,
    RoundOutcome,
    RoundRecord,
    TransformedImage,
)

log = logging.getLogger(__name__)


class ResultSelector:
    """Keeps the per-round history and builds the final result."""

    def __init__(self, target_archive_bytes: float, original_total: int):
        self.target_archive_bytes = target_archive_bytes
        self.original_total = original_total
        self.history: List[RoundRecord] = []

    def is_acceptable(self, measured_size: int) -> bool:
        """True when the size falls in the success band [0.8 * target, target]."""
        return (self.target_archive_bytes * ACCEPT_LOWER_BOUND
                <= measured_size
                <= self.target_archive_bytes)

    def record_round(self, round_index: int, ratio: float,
                     transformed: Sequence[TransformedImage],
                     measured_size: Optional[int]) -> RoundRecord:
        record = RoundRecord(
            round_index=round_index,
            ratio=ratio,
            measured_size=measured_size,
            packaged=measured_size is not None,
            fallback_count=sum(1 for image in transformed if image.fallback),
        )
        self.history.append(record)
        return record

    @staticmethod
    def select_fallback(best: Optional[RoundOutcome],
                        last: Optional[RoundOutcome]) -> Optional[RoundOutcome]:
        """Best feasible candidate if one exists, otherwise the latest packaged round."""
        if best is not None:
            log.info(f"Using best candidate from round {best.round_index + 1} "
                     f"({best.measured_size} bytes)")
            return best
        if last is not None:
            log.info(f"No feasible candidate, using round {last.round_index + 1} "
                     f"({last.measured_size} bytes)")
        return last

    def finalize(self, outcome: RoundOutcome, final_bytes: bytes,
                 converged: bool) -> CompressionResult:
        final_size = len(final_bytes)
        space_saved = self.original_total - final_size
        savings_percent = space_saved / self.original_total * 100

        stats = CompressionStats(
            original_total=self.original_total,
            final_size=final_size,
            space_saved=space_saved,
            savings_percent=savings_percent,
            image_count=len(outcome.packaged_bytes),
            rounds_run=len(self.history),
            converged=converged,
            selected_round=outcome.round_index,
            history=tuple(self.history),
        )
        return CompressionResult(data=final_bytes, stats=stats)
