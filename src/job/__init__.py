from __future__ import annotations

from .runner import JobResult, partition_for, run_job, shuffle
