import json
import logging

from migration import aws_clients
from migration.checkpoint_store import CheckpointStore, load_cursor, save_cursor, stop_signal_present
from migration.config import MigrationConfig
from migration.errors import MalformedScanResponse
from migration.queue_dispatch import BatchDispatcher
from migration.record_transformer import to_source_record

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)


class LambdaContinuation:
    """Continues a scan by invoking the same function again, fire-and-forget."""

    def __init__(self, lambda_client, function_name):
        self.lambda_client = lambda_client
        self.function_name = function_name

    def schedule(self, payload):
        return self.lambda_client.invoke(
            FunctionName=self.function_name,
            InvocationType="Event",
            LogType="None",
            Payload=json.dumps(payload),
        )


def segment_args(event):
    """(TotalSegments, Segment) from the invocation event, defaulting to a full scan."""
    event = event or {}
    total_segments = int(event.get("TotalSegments", 1))
    segment = int(event.get("Segment", 0))
    if total_segments < 1:
        raise ValueError(f"TotalSegments must be >= 1, got {total_segments}")
    if not 0 <= segment < total_segments:
        raise ValueError(f"Segment must be in [0, {total_segments}), got {segment}")
    return total_segments, segment


class PartitionedScanner:
    """
    Scans one segment of the source table, sending each page to the batch
    queue and checkpointing after it.

    Progress lives in the checkpoint store, so an invocation can stop at any
    page boundary and a later one picks up from the stored LastEvaluatedKey.
    When the remaining time drops below `config.min_remaining_time_ms` the
    scanner asks `scheduler` for a continuation and returns.
    """

    def __init__(self, config, table, store, dispatcher, scheduler, remaining_time_ms):
        self.config = config
        self.table = table
        self.store = store
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self.remaining_time_ms = remaining_time_ms

    def run(self, total_segments=1, segment=0):
        cursor = load_cursor(self.store, self.config, total_segments, segment)

        if cursor.stop_requested or stop_signal_present(self.store, self.config):
            log.info("Stop requested, not scanning TotalSegments=%s Segment=%s", total_segments, segment)
            return self._result(cursor, 0, stopped=True)
        if cursor.complete:
            log.info("Segment already complete. TotalSegments=%s Segment=%s", total_segments, segment)
            return self._result(cursor, 0)

        record_count = 0
        while True:
            page = self._scan_page(cursor)
            items = page.get("Items")
            if items is None:
                raise MalformedScanResponse(
                    f"Scan returned no items TotalSegments={total_segments} Segment={segment} "
                    f"lastKey={cursor.last_key}"
                )

            if items:
                records = [to_source_record(item) for item in items]
                record_count += self.dispatcher.dispatch(records)

            # checkpoint only once the page is on the queue
            cursor.records_scanned += len(items)
            cursor.last_key = page.get("LastEvaluatedKey")
            cursor.complete = cursor.last_key is None
            save_cursor(self.store, self.config, cursor)

            if cursor.complete:
                log.info("Scan complete. Processed %d records TotalSegments=%s Segment=%s",
                         cursor.records_scanned, total_segments, segment)
                return self._result(cursor, record_count)

            if stop_signal_present(self.store, self.config):
                log.info("Stop signal seen after %d records TotalSegments=%s Segment=%s",
                         record_count, total_segments, segment)
                return self._result(cursor, record_count, stopped=True)

            ms_remaining = self.remaining_time_ms()
            if ms_remaining < self.config.min_remaining_time_ms:
                log.info("Reinvoking. Processed %d records, %dms remain TotalSegments=%s Segment=%s",
                         record_count, ms_remaining, total_segments, segment)
                self.scheduler.schedule({"TotalSegments": total_segments, "Segment": segment})
                return self._result(cursor, record_count, continued=True)

    def _scan_page(self, cursor):
        kwargs = {"Limit": self.config.scan_batch_size}
        if cursor.total_partitions > 1:
            kwargs["TotalSegments"] = cursor.total_partitions
            kwargs["Segment"] = cursor.partition_id
        if cursor.last_key:
            kwargs["ExclusiveStartKey"] = cursor.last_key
        return self.table.scan(**kwargs)

    @staticmethod
    def _result(cursor, record_count, stopped=False, continued=False):
        return {
            "recordCount": record_count,
            "recordsScanned": cursor.records_scanned,
            "TotalSegments": cursor.total_partitions,
            "Segment": cursor.partition_id,
            "complete": cursor.complete,
            "stopped": stopped,
            "continued": continued,
        }


def lambda_handler(event, context):
    """
    Scan one segment of the legacy table onto the batch queue.

    Invoke it directly (async) with e.g.
      {"TotalSegments": 8, "Segment": 3}
    Both default to a single full-table scan (1, 0).
    """
    log.info("invoked %s", event)
    total_segments, segment = segment_args(event)
    config = MigrationConfig.from_env("SRC_TABLE", "BATCH_QUEUE_URL")

    scanner = PartitionedScanner(
        config,
        table=aws_clients.dynamodb_resource(config).Table(config.src_table),
        store=CheckpointStore(aws_clients.client("ssm", config)),
        dispatcher=BatchDispatcher(
            aws_clients.client("sqs", config),
            config.batch_queue_url,
            max_records=config.scan_batch_size,
        ),
        scheduler=LambdaContinuation(aws_clients.client("lambda", config), context.invoked_function_arn),
        remaining_time_ms=context.get_remaining_time_in_millis,
    )
    return scanner.run(total_segments, segment)
