import logging
from dataclasses import dataclass, field
from itertools import islice

from migration.schemas import primary_key_of

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)

WRITE_BATCH_SIZE = 25  # BatchWriteItem limit


def chunks(iterable, size):
    it = iter(iterable)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


@dataclass
class WriteResult:
    submitted: int = 0
    unprocessed: list = field(default_factory=list)

    @property
    def written(self):
        return self.submitted - len(self.unprocessed)


class BatchWriter:
    def __init__(self, dynamodb, table_name):
        self.dynamodb = dynamodb
        self.table_name = table_name

    def write(self, records):
        """
        Put the records in one BatchWriteItem call.

        Returns the submitted count and the write requests DynamoDB reported
        as UnprocessedItems, untouched. Those are not an error here, the caller
        decides where they go.
        """
        return self.write_requests([{"PutRequest": {"Item": r.to_item()}} for r in records])

    def write_requests(self, requests):
        """Submit raw PutRequests, e.g. ones coming back for redrive."""
        # BatchWriteItem rejects two requests for the same key
        by_key = {primary_key_of(r["PutRequest"]["Item"]): r for r in requests}
        if len(by_key) < len(requests):
            log.info("dropped %d duplicate write requests for %s", len(requests) - len(by_key), self.table_name)
        requests = list(by_key.values())
        if not requests:
            return WriteResult()
        if len(requests) > WRITE_BATCH_SIZE:
            raise ValueError(f"batch write takes at most {WRITE_BATCH_SIZE} items, got {len(requests)}")

        res = self.dynamodb.batch_write_item(RequestItems={self.table_name: requests})
        unprocessed = res.get("UnprocessedItems", {}).get(self.table_name, [])
        return WriteResult(submitted=len(requests), unprocessed=unprocessed)
