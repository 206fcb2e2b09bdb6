from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from jobwatch.api import track_mlflow_run
from jobwatch.configuration import configure_logging, load_watch_config
from jobwatch.errors import ExecutionNotDoneError, PreconditionFailedError, WaitTimeoutError


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch an MLflow run until it finishes.")
    parser.add_argument("config_yaml", type=Path, help="Path to watch YAML config")
    parser.add_argument("--run-id", required=True, help="MLflow run id to watch")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to save the metrics document (required unless app.metrics_location is set)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up waiting after this many seconds",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    config = load_watch_config(args.config_yaml)
    if args.output is None and config.app.metrics_location is None:
        print("Pass --output or set app.metrics_location in the config.", file=sys.stderr)
        return 2
    configure_logging(config.logging.level)

    result = track_mlflow_run(args.run_id, config=config)
    try:
        result.wait_until_done(args.timeout)
        exit_code = 0
    except WaitTimeoutError as exc:
        print(exc, file=sys.stderr)
        return 3
    except ExecutionNotDoneError as exc:
        print(exc, file=sys.stderr)
        exit_code = 1

    try:
        for name, value in sorted(result.all_gauges().items(), key=lambda item: str(item[0])):
            print(f"{name}: {value.attempted.value}")
        # A configured metrics_location is already written by the tracker itself.
        if args.output is not None:
            result.save_metrics(args.output)
            print(f"metrics saved to {args.output}")
    except PreconditionFailedError as exc:
        print(f"Run {args.run_id} did not reach a terminal state: {exc}", file=sys.stderr)
        return 1
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
