import logging

from migration.errors import MalformedExistenceResponse
from migration.schemas import primary_key_of

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)

READ_BATCH_SIZE = 100  # BatchGetItem limit


def dedupe(records):
    """
    Drop records with a repeated primary key. The last occurrence wins but
    keeps the position of the first one.
    """
    by_key = {}
    for record in records:
        by_key[record.primary_key] = record
    return list(by_key.values())


class ExistenceFilter:
    """Filters a batch of DestinationRecords down to the ones not in the table yet."""

    def __init__(self, dynamodb, table_name):
        self.dynamodb = dynamodb
        self.table_name = table_name

    def missing(self, records):
        """
        Yield the records whose (blockmultihash, carpath) is not in the table.

        BatchGetItem rejects duplicate keys in one call, so the batch is
        deduped first. Keys the response leaves out (UnprocessedKeys) count as
        not found: an extra idempotent put beats skipping a record.
        """
        candidates = dedupe(records)
        if not candidates:
            return
        if len(candidates) > READ_BATCH_SIZE:
            raise ValueError(f"existence check takes at most {READ_BATCH_SIZE} keys, got {len(candidates)}")

        res = self.dynamodb.batch_get_item(RequestItems={
            self.table_name: {
                "Keys": [r.key_item() for r in candidates],
                "ProjectionExpression": "blockmultihash, carpath",
            }
        })
        found = self._found_keys(res)

        unprocessed = res.get("UnprocessedKeys", {}).get(self.table_name, {}).get("Keys", [])
        if unprocessed:
            log.info("existence check left %d keys unprocessed, treating them as missing", len(unprocessed))

        for record in candidates:
            if record.primary_key not in found:
                yield record

    def _found_keys(self, res):
        responses = res.get("Responses")
        if responses is None:
            raise MalformedExistenceResponse(f"BatchGetItem on {self.table_name} returned no Responses")
        items = responses.get(self.table_name)
        if items is None:
            if self.table_name not in res.get("UnprocessedKeys", {}):
                raise MalformedExistenceResponse(f"BatchGetItem returned no Responses for {self.table_name}")
            items = []
        return {primary_key_of(item) for item in items}
