import logging
from dataclasses import dataclass

from migration import aws_clients
from migration.batch_writer import WRITE_BATCH_SIZE, BatchWriter, chunks
from migration.config import MigrationConfig
from migration.existence_filter import READ_BATCH_SIZE, ExistenceFilter
from migration.queue_dispatch import UnprocessedSink
from migration.record_transformer import to_destination_records
from migration.schemas import BatchMessage

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)


@dataclass
class MigrationTally:
    item_count: int = 0
    write_count: int = 0
    unprocessed_count: int = 0

    def add(self, other):
        self.item_count += other.item_count
        self.write_count += other.write_count
        self.unprocessed_count += other.unprocessed_count

    def as_dict(self):
        return {
            "itemCount": self.item_count,
            "writeCount": self.write_count,
            "unprocessedCount": self.unprocessed_count,
        }


class ConsumerPipeline:
    """
    transform -> check existing -> write missing -> forward unprocessed.

    One message is processed strictly in order, a read batch at a time, so
    DynamoDB batch limits and memory stay bounded.
    """

    def __init__(self, existence_filter, writer, sink,
                 read_batch_size=READ_BATCH_SIZE, write_batch_size=WRITE_BATCH_SIZE):
        self.existence_filter = existence_filter
        self.writer = writer
        self.sink = sink
        self.read_batch_size = read_batch_size
        self.write_batch_size = write_batch_size

    def migrate(self, records):
        tally = MigrationTally()
        candidates = (dst for record in records for dst in to_destination_records(record))

        # keyed by primary key: a key repeated across read batches is written once
        pending = {}
        for read_batch in chunks(candidates, self.read_batch_size):
            tally.item_count += len(read_batch)
            for record in self.existence_filter.missing(read_batch):
                pending[record.primary_key] = record
                if len(pending) == self.write_batch_size:
                    self._write(list(pending.values()), tally)
                    pending = {}
        if pending:
            self._write(list(pending.values()), tally)
        return tally

    def _write(self, batch, tally):
        result = self.writer.write(batch)
        tally.write_count += result.written
        if result.unprocessed:
            self.sink.forward(result.unprocessed)
            tally.unprocessed_count += len(result.unprocessed)


def build_pipeline(config):
    dynamodb = aws_clients.dynamodb_resource(config)
    sqs = aws_clients.client("sqs", config)
    return ConsumerPipeline(
        ExistenceFilter(dynamodb, config.dst_table),
        BatchWriter(dynamodb, config.dst_table),
        UnprocessedSink(sqs, config.unprocessed_queue_url, config.dst_table),
    )


def lambda_handler(event, _ctx):
    """
    Triggered by the batch queue. Each SQS record carries one BatchMessage.

    Failed messages are reported back as batchItemFailures so only they are
    redelivered; after the queue's max receive count they land in the DLQ.
    """
    config = MigrationConfig.from_env("DST_TABLE", "UNPROCESSED_QUEUE_URL")
    pipeline = build_pipeline(config)

    totals = MigrationTally()
    failures = []
    for rec in event.get("Records", []):
        message_id = rec.get("messageId")
        try:
            message = BatchMessage.parse(rec["body"])
            tally = pipeline.migrate(message.records)
            totals.add(tally)
            log.info("migrated messageId=%s %s", message_id, tally.as_dict())
        except Exception:
            log.exception("migrate FAILED messageId=%s", message_id)
            failures.append({"itemIdentifier": message_id})

    log.info("batch done messages=%d failed=%d %s",
             len(event.get("Records", [])), len(failures), totals.as_dict())
    return {"batchItemFailures": failures}
