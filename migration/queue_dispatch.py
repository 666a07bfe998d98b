import logging

from migration.schemas import BatchMessage, UnprocessedMessage

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)

MAX_MESSAGE_BYTES = 250_000  # SQS hard limit is 256KiB
MAX_RECORDS_PER_MESSAGE = 500


def _send(sqs, queue_url, body):
    # throttling / network errors are retried by the client's retry config
    return sqs.send_message(QueueUrl=queue_url, MessageBody=body)


class BatchDispatcher:
    """Sends SourceRecords to the batch queue, as few messages as fit."""

    def __init__(self, sqs, queue_url, max_records=MAX_RECORDS_PER_MESSAGE, max_bytes=MAX_MESSAGE_BYTES):
        self.sqs = sqs
        self.queue_url = queue_url
        self.max_records = max_records
        self.max_bytes = max_bytes

    def dispatch(self, records):
        """Returns the number of records sent."""
        sent = 0
        for start in range(0, len(records), self.max_records):
            for body, count in self._bodies(records[start:start + self.max_records]):
                log.info("Sending batch of %d with size %d", count, len(body.encode("utf-8")))
                _send(self.sqs, self.queue_url, body)
                sent += count
        return sent

    def _bodies(self, records):
        body = BatchMessage(records=records).to_body()
        if len(body.encode("utf-8")) <= self.max_bytes:
            yield body, len(records)
            return
        if len(records) == 1:
            raise ValueError(f"record {records[0].key} does not fit in one message ({self.max_bytes} bytes)")
        middle = len(records) // 2
        yield from self._bodies(records[:middle])
        yield from self._bodies(records[middle:])


class UnprocessedSink:
    """Forwards write requests DynamoDB did not commit to the side queue for redrive."""

    def __init__(self, sqs, queue_url, table_name):
        self.sqs = sqs
        self.queue_url = queue_url
        self.table_name = table_name

    def forward(self, requests):
        if not requests:
            return 0
        body = UnprocessedMessage(table=self.table_name, requests=requests).to_body()
        log.info("Forwarding %d unprocessed writes for %s", len(requests), self.table_name)
        _send(self.sqs, self.queue_url, body)
        return len(requests)
