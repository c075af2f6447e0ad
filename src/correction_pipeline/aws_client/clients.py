"""AWS client configuration for the correction pipeline."""

import boto3
from botocore.config import Config

from correction_pipeline.config import settings


def _local_endpoint_kwargs() -> dict:
    """Extra client arguments pointing boto3 at a local AWS emulator (e.g. LocalStack)."""
    if not settings.LOCAL_DEVELOPMENT_MODE:
        return {}
    return {
        "endpoint_url": settings.LOCAL_AWS_ENDPOINT_URL,
        "aws_access_key_id": "test",
        "aws_secret_access_key": "test",
    }


def get_dynamodb_resource():
    """Creates and returns a boto3 DynamoDB resource.

    In LOCAL_DEVELOPMENT_MODE the resource talks to the local emulator with test credentials,
    otherwise the default credential chain (the Lambda execution role) is used.

    Returns:
        boto3.resources.base.ServiceResource: A configured DynamoDB resource.
    """
    return boto3.resource("dynamodb", region_name=settings.AWS_REGION, **_local_endpoint_kwargs())


def get_s3_client():
    """Creates and returns a boto3 S3 client for the scanned images bucket."""
    return boto3.client("s3", region_name=settings.AWS_REGION, **_local_endpoint_kwargs())


def get_bedrock_runtime_client():
    """Creates and returns a boto3 Bedrock runtime client.

    botocore retries are disabled; the model invoker owns the retry policy.

    Returns:
        boto3.client: A configured bedrock-runtime client.
    """
    config = Config(
        read_timeout=settings.MODEL_READ_TIMEOUT_SECONDS,
        retries={"max_attempts": 1, "mode": "standard"},
    )
    return boto3.client("bedrock-runtime", region_name=settings.BEDROCK_REGION, config=config)
