"""
Operate a scan from a workstation.

  python scripts/migration_admin.py start  --function <scanner-name> --segments 8
  python scripts/migration_admin.py status --segments 8
  python scripts/migration_admin.py stop
  python scripts/migration_admin.py reset  --segments 8

STAGE (or --stage) selects the checkpoint keyspace, AWS credentials and
region come from the usual boto3 environment.
"""
import argparse
import json
import logging
import os
from datetime import datetime, timezone

from migration import aws_clients
from migration.checkpoint_store import CheckpointStore, load_cursor, stop_signal_present
from migration.config import MigrationConfig

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)


def start_scan(lambda_client, function_name, total_segments):
    """Fire one async scanner invocation per segment."""
    for segment in range(total_segments):
        payload = {"TotalSegments": total_segments, "Segment": segment}
        lambda_client.invoke(
            FunctionName=function_name,
            InvocationType="Event",
            LogType="None",
            Payload=json.dumps(payload),
        )
        log.info("started %s %s", function_name, payload)
    return total_segments


def request_stop(store, config):
    """Raise the global stop signal. Running segments halt after their current page."""
    store.put(config.stop_key, datetime.now(timezone.utc).isoformat())


def scan_status(store, config, total_segments):
    segments = []
    for segment in range(total_segments):
        cursor = load_cursor(store, config, total_segments, segment)
        segments.append({
            "Segment": segment,
            "recordsScanned": cursor.records_scanned,
            "complete": cursor.complete,
            "stopRequested": cursor.stop_requested,
        })
    return {
        "TotalSegments": total_segments,
        "stopSignal": stop_signal_present(store, config),
        "recordsScanned": sum(s["recordsScanned"] for s in segments),
        "complete": sum(1 for s in segments if s["complete"]),
        "segments": segments,
    }


def reset_scan(store, config, total_segments):
    """Forget all progress of a scan (and the stop signal) so it starts over."""
    for segment in range(total_segments):
        store.delete(config.cursor_key(total_segments, segment))
    store.delete(config.stop_key)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Operate the block index migration scan")
    parser.add_argument("command", choices=["start", "status", "stop", "reset"])
    parser.add_argument("--segments", type=int, default=1, help="TotalSegments of the scan")
    parser.add_argument("--function", help="scanner function name or ARN (start only)")
    parser.add_argument("--stage", help="overrides STAGE from env")
    args = parser.parse_args(argv)

    if args.segments < 1:
        parser.error("--segments must be >= 1")
    if args.command == "start" and not args.function:
        parser.error("start needs --function")

    env = dict(os.environ)
    if args.stage:
        env["STAGE"] = args.stage
    config = MigrationConfig.from_env(environ=env)
    store = CheckpointStore(aws_clients.client("ssm", config))

    if args.command == "start":
        start_scan(aws_clients.client("lambda", config), args.function, args.segments)
    elif args.command == "stop":
        request_stop(store, config)
    elif args.command == "reset":
        reset_scan(store, config, args.segments)
    print(json.dumps(scan_status(store, config, args.segments), indent=2))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
