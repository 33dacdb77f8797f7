"""
AWS boundary modules.

Exports: S3AttachmentClient
"""

from .s3_client import S3AttachmentClient

__all__ = ["S3AttachmentClient"]
