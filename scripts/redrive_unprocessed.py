"""
Resubmit write requests parked on the unprocessed-writes queue.

  python scripts/redrive_unprocessed.py [--max-messages 1000]

Needs STAGE and UNPROCESSED_QUEUE_URL in env. Each run makes one pass over
the messages queued when it starts. Requests DynamoDB still does not commit
go back on the same queue for the next run; a message is only deleted once
all of its requests were either written or forwarded again. Unreadable
messages are logged and left on the queue.
"""
import argparse
import json
import logging

from migration import aws_clients
from migration.batch_writer import WRITE_BATCH_SIZE, BatchWriter, chunks
from migration.config import MigrationConfig
from migration.errors import InvalidBatchMessage
from migration.queue_dispatch import UnprocessedSink
from migration.schemas import UnprocessedMessage

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)


def queue_depth(sqs, queue_url):
    res = sqs.get_queue_attributes(QueueUrl=queue_url, AttributeNames=["ApproximateNumberOfMessages"])
    return int(res.get("Attributes", {}).get("ApproximateNumberOfMessages", 0))


def redrive(sqs, dynamodb, queue_url, max_messages=1000):
    """
    One pass over the messages on the queue when the run starts. Requests
    forwarded back during the run wait for the next one.
    """
    totals = {"messages": 0, "failed": 0, "writeCount": 0, "unprocessedCount": 0}
    budget = min(max_messages, queue_depth(sqs, queue_url))

    handled = 0
    while handled < budget:
        res = sqs.receive_message(
            QueueUrl=queue_url,
            MaxNumberOfMessages=min(10, budget - handled),
            WaitTimeSeconds=1,
        )
        messages = res.get("Messages", [])
        if not messages:
            break

        for msg in messages:
            handled += 1
            try:
                message = UnprocessedMessage.parse(msg["Body"])
            except InvalidBatchMessage:
                # left on the queue for inspection, it reappears after the visibility timeout
                log.exception("redrive skipped messageId=%s", msg.get("MessageId"))
                totals["failed"] += 1
                continue

            writer = BatchWriter(dynamodb, message.table)
            sink = UnprocessedSink(sqs, queue_url, message.table)

            for batch in chunks(message.requests, WRITE_BATCH_SIZE):
                result = writer.write_requests(batch)
                totals["writeCount"] += result.written
                if result.unprocessed:
                    totals["unprocessedCount"] += sink.forward(result.unprocessed)

            sqs.delete_message(QueueUrl=queue_url, ReceiptHandle=msg["ReceiptHandle"])
            totals["messages"] += 1

    log.info("redrive done %s", totals)
    return totals


def main(argv=None):
    parser = argparse.ArgumentParser(description="Redrive unprocessed destination writes")
    parser.add_argument("--max-messages", type=int, default=1000)
    args = parser.parse_args(argv)

    config = MigrationConfig.from_env("UNPROCESSED_QUEUE_URL")
    totals = redrive(
        aws_clients.client("sqs", config),
        aws_clients.dynamodb_resource(config),
        config.unprocessed_queue_url,
        max_messages=args.max_messages,
    )
    print(json.dumps(totals, indent=2))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
