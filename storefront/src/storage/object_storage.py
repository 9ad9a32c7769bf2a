"""Async S3-compatible storage client for the artwork image bucket."""

from typing import Any, Dict, Optional

import aioboto3
from botocore.config import Config
import structlog

logger = structlog.get_logger(__name__)


class ObjectStorage:
    """Async S3 client using aioboto3."""

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "us-east-1",
        connect_timeout: float = 5.0,
    ):
        """
        Initialize storage client.

        Args:
            endpoint_url: S3 endpoint (e.g., http://minio:9000)
            access_key: Access key ID
            secret_key: Secret access key
            bucket: Bucket holding artwork images
            region: AWS region (default: us-east-1)
            connect_timeout: Connect and read timeout in seconds
        """
        self.endpoint_url = endpoint_url
        self.access_key = access_key
        self.secret_key = secret_key
        self.bucket = bucket
        self.region = region

        self.config = Config(
            connect_timeout=connect_timeout,
            read_timeout=connect_timeout,
            retries={
                'max_attempts': 1,
                'mode': 'standard'
            }
        )

        self.session = aioboto3.Session()

    def get_client(self):
        """
        Get an async S3 client context manager.

        Usage:
            async with storage.get_client() as s3:
                await s3.head_bucket(...)
        """
        return self.session.client(
            's3',
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region,
            config=self.config
        )

    async def ping(self) -> Dict[str, Any]:
        """
        Check connectivity and that the image bucket is reachable.

        Raises:
            botocore.exceptions.ClientError: Credentials rejected or bucket missing
        """
        async with self.get_client() as s3:
            response = await s3.list_buckets()
            names = [b['Name'] for b in response.get('Buckets', [])]
            await s3.head_bucket(Bucket=self.bucket)
        logger.debug("storage_ping_ok", bucket=self.bucket, bucket_count=len(names))
        return {
            "bucket": self.bucket,
            "region": self.region,
            "bucketCount": len(names),
        }
