"""
Tunable constants and run options for the size-targeting compressor.
"""

from dataclasses import dataclass
from typing import Optional


# Ratio bounds (fraction of the original byte budget)
MIN_RATIO = 0.05
MAX_RATIO = 1.0

# Output dimension bounds, px per axis
MIN_DIMENSION = 50
MAX_DIMENSION = 2048

# Lossy encode quality, 0..1 scale
MIN_QUALITY = 0.10
MAX_QUALITY = 0.95
QUALITY_GAIN = 1.2

# Acceptance band is [ACCEPT_LOWER_BOUND * target, target]
ACCEPT_LOWER_BOUND = 0.8

# Per-round reactive correction
REACTIVE_TIGHTEN = 0.85
REACTIVE_RELAX = 1.10

# Persistent trend adjustment between rounds
TREND_TIGHTEN = 0.8
TREND_RELAX = 1.05

# Deflate levels used by the archive evaluator
TRIAL_LEVEL = 6
FINAL_LEVEL = 9

DEFAULT_MAX_ROUNDS = 8
DEFAULT_OVERHEAD_FRACTION = 0.15
DEFAULT_TRANSFORM_TIMEOUT = 10.0
DEFAULT_MAX_SIZE_MB = 2.5
DEFAULT_OUTPUT_NAME = 'compressed_images.zip'

BYTES_PER_MB = 1024 * 1024

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp'}
IGNORED_FOLDERS = {'__MACOSX'}


@dataclass(frozen=True)
class CompressionOptions:
    """
    Options for one compression run.

    Fields:
        max_rounds: Upper bound on search rounds.
        overhead_fraction: Share of the target reserved for container structure.
        transform_timeout: Seconds allowed per image decode/encode, None to wait forever.
        workers: Images transformed concurrently within a round (1 = sequential).
        time_budget: Optional wall-clock budget in seconds for the whole run.
    """
    max_rounds: int = DEFAULT_MAX_ROUNDS
    overhead_fraction: float = DEFAULT_OVERHEAD_FRACTION
    transform_timeout: Optional[float] = DEFAULT_TRANSFORM_TIMEOUT
    workers: int = 1
    time_budget: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_rounds < 1:
            raise ValueError(f"max_rounds must be at least 1, got {self.max_rounds}")
        if not 0.0 <= self.overhead_fraction < 1.0:
            raise ValueError(f"overhead_fraction must be in [0, 1), got {self.overhead_fraction}")
        if self.transform_timeout is not None and self.transform_timeout <= 0:
            raise ValueError(f"transform_timeout must be positive, got {self.transform_timeout}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.time_budget is not None and self.time_budget <= 0:
            raise ValueError(f"time_budget must be positive, got {self.time_budget}")


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def clamp_ratio(ratio: float) -> float:
    """Keep a compression ratio inside [MIN_RATIO, MAX_RATIO]."""
    return clamp(ratio, MIN_RATIO, MAX_RATIO)
