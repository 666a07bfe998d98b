import boto3
from botocore.config import Config


def retry_config(max_attempts):
    """
    Throttling and network errors are retried by botocore with capped
    exponential backoff and jitter. 10 attempts spread over roughly 1-2 minutes.
    """
    return Config(retries={"max_attempts": max_attempts, "mode": "standard"})


def dynamodb_resource(config):
    return boto3.resource("dynamodb", config=retry_config(config.max_retry_attempts))


def client(service, config):
    return boto3.client(service, config=retry_config(config.max_retry_attempts))
