from __future__ import annotations
import sys
from pathlib import Path

# allow `python scripts/pipeline/run_cramer_job.py` from anywhere
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from src.job.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
