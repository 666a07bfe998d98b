import boto3
import pytest
from moto import mock_aws

from migration.checkpoint_store import CheckpointStore
from migration.config import MigrationConfig

REGION = "us-west-2"
SRC_TABLE = "blocks"
DST_TABLE = "blocks-cars-position"


@pytest.fixture
def aws(monkeypatch):
    # Mock AWS environment, never talk to a real account
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    with mock_aws():
        yield


@pytest.fixture
def dynamodb(aws):
    return boto3.resource("dynamodb", region_name=REGION)


@pytest.fixture
def src_table(dynamodb):
    table = dynamodb.create_table(
        TableName=SRC_TABLE,
        KeySchema=[{"AttributeName": "multihash", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "multihash", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )
    table.wait_until_exists()
    return table


@pytest.fixture
def dst_table(dynamodb):
    table = dynamodb.create_table(
        TableName=DST_TABLE,
        KeySchema=[
            {"AttributeName": "blockmultihash", "KeyType": "HASH"},
            {"AttributeName": "carpath", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "blockmultihash", "AttributeType": "S"},
            {"AttributeName": "carpath", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    table.wait_until_exists()
    return table


@pytest.fixture
def sqs(aws):
    return boto3.client("sqs", region_name=REGION)


@pytest.fixture
def batch_queue_url(sqs):
    return sqs.create_queue(QueueName="batchQueue")["QueueUrl"]


@pytest.fixture
def unprocessed_queue_url(sqs):
    return sqs.create_queue(QueueName="unprocessedWritesQueue")["QueueUrl"]


@pytest.fixture
def store(aws):
    return CheckpointStore(boto3.client("ssm", region_name=REGION))


@pytest.fixture
def config(batch_queue_url, unprocessed_queue_url):
    return MigrationConfig(
        stage="test",
        src_table=SRC_TABLE,
        dst_table=DST_TABLE,
        batch_queue_url=batch_queue_url,
        unprocessed_queue_url=unprocessed_queue_url,
        scan_batch_size=2,
    )


@pytest.fixture
def env(monkeypatch, config):
    monkeypatch.setenv("STAGE", config.stage)
    monkeypatch.setenv("SRC_TABLE", config.src_table)
    monkeypatch.setenv("DST_TABLE", config.dst_table)
    monkeypatch.setenv("BATCH_QUEUE_URL", config.batch_queue_url)
    monkeypatch.setenv("UNPROCESSED_QUEUE_URL", config.unprocessed_queue_url)
    monkeypatch.setenv("SCAN_BATCH_SIZE", str(config.scan_batch_size))
    return config


@pytest.fixture
def drain_queue(sqs):
    """Drain a mocked queue, returning message bodies."""
    def drain(queue_url):
        bodies = []
        while True:
            res = sqs.receive_message(QueueUrl=queue_url, MaxNumberOfMessages=10)
            messages = res.get("Messages", [])
            if not messages:
                return bodies
            for msg in messages:
                bodies.append(msg["Body"])
                sqs.delete_message(QueueUrl=queue_url, ReceiptHandle=msg["ReceiptHandle"])
    return drain
