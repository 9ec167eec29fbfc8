"""Workpool Execution — worker pools, fan-out batches, and their plumbing.

ARCHITECTURE
────────────
::

    JobProcessor (long-lived)          run_batch (one-shot)
      start / enqueue / stop             feed → process → collect
            │                                   │
            └──────────────┬────────────────────┘
                           ▼
                 Conduit (zero-capacity hand-off)
                           │
                           ▼
                 JobResult / FanOutResult

MODULE MAP (recommended reading order)
──────────────────────────────────────
  1. conduit.py   ─ Conduit, ConduitReader
  2. results.py   ─ JobResult, FanOutResult, partition_results
  3. job.py       ─ JobProcessor, JobState
  4. fan_out.py   ─ run_batch, run_batch_from_settings
"""

from .conduit import Conduit, ConduitReader
from .fan_out import run_batch, run_batch_from_settings
from .job import JobProcessor, JobState
from .results import FanOutResult, JobResult, partition_results

__all__ = [
    "Conduit",
    "ConduitReader",
    "JobProcessor",
    "JobState",
    "JobResult",
    "FanOutResult",
    "partition_results",
    "run_batch",
    "run_batch_from_settings",
]
