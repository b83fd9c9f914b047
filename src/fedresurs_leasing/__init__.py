"""Package initializer for `fedresurs_leasing`."""

from .config import Settings
from .run_result import JobResult

__all__ = ["JobResult", "Settings"]
