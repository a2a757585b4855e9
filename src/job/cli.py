from __future__ import annotations
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from ..config_model.model import load_config
from ..utils.errors import CorrelationError
from ..utils.log import get_job_logger, get_logger
from .runner import run_job


def _abs_or_s3(p: str) -> str:
    return p if p.startswith("s3://") else str(Path(p).resolve())


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Cramer's V between categorical attribute pairs (map/reduce).")
    ap.add_argument("--config", default=None, help="TOML config (default: $CRAMER_CFG or config/config.toml)")
    ap.add_argument("--input", nargs="+", default=None, help="input files or directories")
    ap.add_argument("--output", default=None, help="output directory")
    ap.add_argument("--source-attributes", default=None, help="comma separated ordinals")
    ap.add_argument("--dest-attributes", default=None, help="comma separated ordinals")
    ap.add_argument("--reducers", type=int, default=None)
    ap.add_argument("--mappers", type=int, default=None)
    ap.add_argument("--split-size", type=int, default=None)
    ap.add_argument("--executor", choices=["serial", "thread", "process"], default=None)
    ap.add_argument("--overwrite", action="store_true", default=None)
    ap.add_argument("--print", dest="print_lines", action="store_true", help="echo scored lines to stdout")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config).with_job_overrides(
            input_paths=[_abs_or_s3(p) for p in args.input] if args.input else None,
            output_path=_abs_or_s3(args.output) if args.output else None,
            source_attributes=args.source_attributes,
            dest_attributes=args.dest_attributes,
            num_reducers=args.reducers,
            num_mappers=args.mappers,
            split_size=args.split_size,
            executor=args.executor,
            overwrite=args.overwrite,
        )
    except (RuntimeError, FileNotFoundError, ValueError) as e:
        # no config, no configured logger yet
        get_logger().error("config load failed", exc_info=e, extra={"config": args.config, "error": type(e).__name__})
        return 1

    log = get_job_logger(cfg, "cli")
    try:
        result = run_job(cfg)
    except (CorrelationError, FileExistsError, FileNotFoundError, ValueError) as e:
        log.error("job failed", exc_info=e, extra={"error": type(e).__name__})
        return 1

    if args.print_lines:
        for line in result.lines:
            print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
