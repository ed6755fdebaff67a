"""
Provision the DynamoDB tables and S3 buckets for a fresh environment.

    python backend/scripts/create_tables.py [--endpoint-url http://localhost:4566]
"""
import argparse
import os
import sys

import boto3
from botocore.exceptions import ClientError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shared.config import config  # noqa: E402
from shared.dynamo import create_tables  # noqa: E402
from shared.logging import logger  # noqa: E402


def create_buckets(s3, region: str) -> None:
    for bucket in (config.TASK_IMAGES_BUCKET, config.TASK_SCREENSHOTS_BUCKET):
        params = {'Bucket': bucket}
        if region != 'us-east-1':
            params['CreateBucketConfiguration'] = {'LocationConstraint': region}
        try:
            s3.create_bucket(**params)
            logger.info(f"Created bucket {bucket}")
        except ClientError as e:
            if e.response['Error']['Code'] not in ('BucketAlreadyOwnedByYou', 'BucketAlreadyExists'):
                raise
            logger.info(f"Bucket {bucket} already exists")


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument('--endpoint-url', default=None, help='Local AWS endpoint (e.g. LocalStack)')
    args = parser.parse_args()

    dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION, endpoint_url=args.endpoint_url)
    s3 = boto3.client('s3', region_name=config.AWS_REGION, endpoint_url=args.endpoint_url)

    created = create_tables(dynamodb)
    logger.info(f"Tables created: {', '.join(created) or 'none (all exist)'}")
    create_buckets(s3, config.AWS_REGION)


if __name__ == '__main__':
    main()
