import boto3
from botocore.exceptions import ClientError

from distmirror.blobstores.base import BaseBlobStore
from distmirror.exceptions import BlobStoreError


class S3BlobStore(BaseBlobStore):
    """
    A blob store kept in Amazon S3 (or an S3-compatible service).
    """

    type_aliases = ["s3"]

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ):
        self.bucket = bucket
        self.prefix = prefix.strip("/")

        options = {"region_name": region, "endpoint_url": endpoint_url}
        if access_key_id and secret_access_key:
            options["aws_access_key_id"] = access_key_id
            options["aws_secret_access_key"] = secret_access_key
        self.client = boto3.client(
            "s3", **{key: value for key, value in options.items() if value}
        )

        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            raise BlobStoreError(f"Cannot use bucket '{self.bucket}': {e}")

    def __str__(self):
        if self.prefix:
            return f"S3 (bucket {self.bucket}, prefix {self.prefix})"
        return f"S3 (bucket {self.bucket})"

    def _full_key(self, content_hash: str) -> str:
        """Combines the prefix with the content path to form the full S3 key."""
        path = self.content_path(content_hash)
        if self.prefix:
            return f"{self.prefix}/{path}"
        return path

    def read(self, content_hash: str) -> bytes | None:
        key = self._full_key(content_hash)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("NoSuchKey", "404"):
                return None
            raise BlobStoreError(f"Failed to read {key}: {e}")
        return response["Body"].read()

    def write(self, content_hash: str, data: bytes):
        key = self._full_key(content_hash)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except ClientError as e:
            raise BlobStoreError(f"Failed to write {key}: {e}")

