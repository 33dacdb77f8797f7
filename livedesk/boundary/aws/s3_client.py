"""
S3 client for chat attachment bucket operations.

Stores uploaded attachment bytes and issues time-limited download URLs.
Calls are blocking; async callers run them in a worker thread.

Dependencies: boto3, botocore
System role: Blob store adapter for the Message Channel
"""

from datetime import datetime, timedelta, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from livedesk.core.exceptions import AttachmentError


class S3AttachmentClient:
    """S3 client for the attachment bucket (upload + signed download URLs)."""

    def __init__(
        self,
        bucket: str,
        region: str = "ap-south-1",
        endpoint_url: str | None = None,
        s3_client=None,
    ) -> None:
        """
        Initialize S3 client for the attachment bucket.

        Args:
            bucket: S3 bucket name for attachments
            region: AWS region for S3 bucket
            endpoint_url: Optional custom endpoint (MinIO, LocalStack)
            s3_client: Pre-built boto3 client (tests inject a stub)
        """
        self._bucket = bucket
        self._region = region
        self._s3_client = s3_client or boto3.client(
            "s3", region_name=region, endpoint_url=endpoint_url
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def upload_bytes(
        self,
        s3_key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Store an attachment.

        Args:
            s3_key: Object key (path in bucket)
            data: File contents
            content_type: MIME type recorded on the object

        Returns:
            str: The object key, used as the message file_url

        Raises:
            AttachmentError: If S3 rejects the upload
        """
        try:
            self._s3_client.put_object(
                Bucket=self._bucket,
                Key=s3_key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise AttachmentError(f"Failed to upload attachment: {e}", key=s3_key) from e
        return s3_key

    def generate_presigned_download_url(
        self,
        s3_key: str,
        expires_in: int = 3600,
    ) -> tuple[str, datetime]:
        """
        Generate presigned URL for downloading/viewing an attachment.

        Args:
            s3_key: S3 object key (path in bucket)
            expires_in: URL expiry in seconds (default 1 hour)

        Returns:
            tuple[str, datetime]: (presigned_url, expires_at)

        Raises:
            AttachmentError: If presigned URL generation fails
        """
        try:
            presigned_url = self._s3_client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self._bucket, "Key": s3_key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            raise AttachmentError(f"Failed to sign attachment URL: {e}", key=s3_key) from e
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        return presigned_url, expires_at
