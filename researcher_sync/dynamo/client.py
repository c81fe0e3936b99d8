import os, boto3
from botocore.config import Config

RESEARCHERS_TABLE = os.environ.get("DDB_TABLE_RESEARCHERS", "verified_researchers")


def get_dynamo_resource():
    """
    DynamoDB resource for the researcher store.
    - Local:  DYNAMO_LOCAL_URL (e.g. http://dynamodb-local:8000), dummy credentials allowed
    - AWS:    AWS_REGION plus the usual credential chain
    """
    local_url = os.getenv("DYNAMO_LOCAL_URL")
    region = os.getenv("AWS_REGION", "eu-central-1")
    # botocore retries throttled store calls; registry HTTP calls are never retried
    cfg = Config(retries={"max_attempts": 10, "mode": "standard"})

    kwargs = {"region_name": region, "config": cfg}
    if local_url:
        kwargs.update(
            endpoint_url=local_url,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", "dummy"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", "dummy"),
        )
    return boto3.resource("dynamodb", **kwargs)