"""
Size-Targeting Search Loop.

Each round transforms every image at one ratio, packages the set at the
trial level and compares the measured size with the target. Two adjustments
steer the ratio: a persistent trend on `running_ratio` applied after each
round, and a one-round reactive nudge based on the previous measurement.
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .archive import ArchiveEvaluator, CompressionLevel
from .config import (
    ACCEPT_LOWER_BOUND,
    REACTIVE_RELAX,
    REACTIVE_TIGHTEN,
    TREND_RELAX,
    TREND_TIGHTEN,
    CompressionOptions,
    clamp_ratio,
)
from .errors import FatalCompressionError, NoFeasibleArchiveError, PackagingError
from .models import CompressionResult, ImageRecord, RoundOutcome, TransformedImage
from .result import ResultSelector
from .transform import TransformEngine

log = logging.getLogger(__name__)

ProgressReporter = Callable[[str, float], None]


def initial_ratio(original_total: int, target_archive_bytes: float,
                  overhead_fraction: float) -> float:
    """Starting ratio: payload budget (target minus container overhead) over the input total."""
    target_payload_bytes = target_archive_bytes * (1 - overhead_fraction)
    return clamp_ratio(target_payload_bytes / original_total)


@dataclass
class SearchState:
    """Loop state threaded through the rounds of one run."""
    running_ratio: float
    round_index: int = 0
    previous_size: Optional[int] = None
    best_outcome: Optional[RoundOutcome] = None
    best_size: float = math.inf
    last_outcome: Optional[RoundOutcome] = None

    def effective_ratio(self, target_archive_bytes: float) -> float:
        ratio = self.running_ratio
        if self.round_index > 0 and self.previous_size is not None:
            if self.previous_size > target_archive_bytes:
                ratio *= REACTIVE_TIGHTEN
            elif self.previous_size < target_archive_bytes * ACCEPT_LOWER_BOUND:
                ratio *= REACTIVE_RELAX
        return clamp_ratio(ratio)

    def record(self, outcome: RoundOutcome, target_archive_bytes: float) -> None:
        self.previous_size = outcome.measured_size
        self.last_outcome = outcome
        if outcome.measured_size <= target_archive_bytes and outcome.measured_size < self.best_size:
            self.best_outcome = outcome
            self.best_size = outcome.measured_size

    def adjust_trend(self, measured_size: int, target_archive_bytes: float) -> None:
        factor = TREND_TIGHTEN if measured_size > target_archive_bytes else TREND_RELAX
        self.running_ratio *= factor


class SizeTargetingSearch:
    """
    Drives transform rounds until the packaged size lands in the acceptance band.

    The engine and evaluator are injectable; anything with the same
    `transform(image, ratio)` / `package(items, level)` methods works.
    """

    def __init__(self, options: Optional[CompressionOptions] = None,
                 engine: Optional[TransformEngine] = None,
                 evaluator: Optional[ArchiveEvaluator] = None,
                 progress: Optional[ProgressReporter] = None):
        self.options = options or CompressionOptions()
        self.engine = engine or TransformEngine(timeout=self.options.transform_timeout)
        self.evaluator = evaluator or ArchiveEvaluator()
        self.progress = progress

    def run(self, images: Sequence[ImageRecord], target_archive_bytes: float) -> CompressionResult:
        """
        Compress `images` into an archive no larger than `target_archive_bytes` where possible.

        Returns:
            CompressionResult with the archive packaged at the final level.

        Raises:
            ValueError: on an empty image set, duplicate names or a non-positive target.
            NoFeasibleArchiveError: if no round could be packaged.
            FatalCompressionError: if the selected round cannot be packaged at the final level.
        """
        images = tuple(images)
        self._validate(images, target_archive_bytes)

        max_rounds = self.options.max_rounds
        original_total = sum(image.original_size for image in images)
        selector = ResultSelector(target_archive_bytes, original_total)
        state = SearchState(running_ratio=initial_ratio(
            original_total, target_archive_bytes, self.options.overhead_fraction))

        log.info(f"Original total size: {original_total} bytes, "
                 f"target archive size: {target_archive_bytes:.0f} bytes, "
                 f"initial ratio: {state.running_ratio:.3f}")
        self._report('Analyzing images...', 5)

        started = time.monotonic()
        selected: Optional[RoundOutcome] = None
        converged = False

        for round_index in range(max_rounds):
            state.round_index = round_index
            ratio = state.effective_ratio(target_archive_bytes)
            self._report(f"Compression iteration {round_index + 1}/{max_rounds}...",
                         self._round_percent(round_index))
            log.info(f"Iteration {round_index + 1}: using ratio {ratio:.3f}")

            transformed = self._transform_round(images, ratio, round_index)
            is_last = round_index == max_rounds - 1 or self._out_of_time(started)

            try:
                archive = self.evaluator.package(
                    [(image.name, image.encoded_bytes) for image in transformed],
                    CompressionLevel.TRIAL)
            except PackagingError as e:
                log.error(f"Failed to package iteration {round_index + 1}: {e}")
                selector.record_round(round_index, ratio, transformed, None)
                if is_last:
                    # The original tool aborted here; an earlier packaged round is delivered instead
                    selected = selector.select_fallback(state.best_outcome, state.last_outcome)
                    if selected is None:
                        raise NoFeasibleArchiveError() from e
                    break
                continue

            outcome = RoundOutcome(
                round_index=round_index,
                ratio_used=ratio,
                packaged_bytes=transformed,
                measured_size=len(archive),
            )
            selector.record_round(round_index, ratio, transformed, outcome.measured_size)
            state.record(outcome, target_archive_bytes)
            log.info(f"Iteration {round_index + 1}: ZIP size {outcome.measured_size} bytes")

            if selector.is_acceptable(outcome.measured_size):
                selected = outcome
                converged = True
                break

            if is_last:
                if round_index < max_rounds - 1:
                    log.warning(f"Time budget exhausted after iteration {round_index + 1}")
                selected = selector.select_fallback(state.best_outcome, outcome)
                break

            state.adjust_trend(outcome.measured_size, target_archive_bytes)

        self._report('Finalizing...', 90)
        try:
            final_bytes = self.evaluator.package(selected.items(), CompressionLevel.FINAL)
        except PackagingError as e:
            raise FatalCompressionError(f"Failed to create compressed ZIP: {e}") from e

        result = selector.finalize(selected, final_bytes, converged)
        log.info(f"Final ZIP size: {result.stats.final_size} bytes "
                 f"({result.stats.savings_percent:.1f}% saved)")
        self._report('Complete!', 100)
        return result

    def _transform_round(self, images: Tuple[ImageRecord, ...], ratio: float,
                         round_index: int) -> Tuple[TransformedImage, ...]:
        """Transform every image; the round is complete only once every slot is filled."""
        slots: List[Optional[TransformedImage]] = [None] * len(images)
        workers = min(self.options.workers, len(images))

        if workers == 1:
            for index, image in enumerate(images):
                slots[index] = self.engine.transform(image, ratio)
                self._report_image(round_index, index + 1, len(images), image.name)
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='round') as pool:
                futures = {
                    pool.submit(self.engine.transform, image, ratio): index
                    for index, image in enumerate(images)
                }
                for done, future in enumerate(as_completed(futures), start=1):
                    index = futures[future]
                    slots[index] = future.result()
                    self._report_image(round_index, done, len(images), images[index].name)

        return tuple(slots)

    def _validate(self, images: Tuple[ImageRecord, ...], target_archive_bytes: float) -> None:
        if not images:
            raise ValueError('No images to compress')
        if target_archive_bytes <= 0:
            raise ValueError(f"Target size must be positive, got {target_archive_bytes}")
        names = [image.name for image in images]
        if len(set(names)) != len(names):
            raise ValueError('Image names must be unique')
        if sum(image.original_size for image in images) == 0:
            raise ValueError('Images are empty')

    def _out_of_time(self, started: float) -> bool:
        budget = self.options.time_budget
        return budget is not None and time.monotonic() - started >= budget

    def _round_percent(self, round_index: int) -> float:
        return 10 + round_index * 70 / self.options.max_rounds

    def _report_image(self, round_index: int, done: int, total: int, name: str) -> None:
        share = done / total * (70 / self.options.max_rounds)
        self._report(f"Processing {name[:30]}...", self._round_percent(round_index) + share)

    def _report(self, text: str, percent: float) -> None:
        if self.progress is not None:
            self.progress(text, percent)
