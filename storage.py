"""
Presentation object storage.

Uploads go to an S3 compatible bucket. Public URLs are derived from the
configured public base URL, and the existence check used before trusting
cached presentation metadata lives here too.
"""
import posixpath
from urllib.parse import quote, unquote

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from config import config
from errors import StorageError

FILE_NAME_METADATA_KEY = "original-file-name"


def _client_error(e):
    error = e.response.get("Error", {})
    code = str(error.get("Code") or e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", ""))
    return StorageError(error.get("Message") or str(e), code=code)


class PresentationStorage:
    def __init__(self, client=None, bucket_name=None, public_base_url=None):
        settings = config.storage
        self.s3_client = client or boto3.client(
            's3',
            endpoint_url=settings.endpoint_url,
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            region_name=settings.region,
        )
        self.bucket_name = bucket_name or settings.bucket_name
        base = public_base_url or settings.public_base_url
        if not base and settings.endpoint_url:
            base = f"{settings.endpoint_url.rstrip('/')}/{self.bucket_name}"
        elif not base:
            base = f"https://{self.bucket_name}.s3.{settings.region}.amazonaws.com"
        self.public_base_url = base.rstrip("/")

    def upload(self, key, data, content_type=None, file_name=None):
        """
        Store a new object. Never overwrites: an existing key fails with a
        StorageError whose `is_duplicate` is True.
        """
        params = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": data,
            "IfNoneMatch": "*",
        }
        if content_type:
            params["ContentType"] = content_type
        if file_name:
            # Object metadata must be ASCII
            params["Metadata"] = {FILE_NAME_METADATA_KEY: quote(file_name)}
        try:
            self.s3_client.put_object(**params)
        except ClientError as e:
            raise _client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e

    def stat(self, key):
        """Size, content type and original file name of a stored object."""
        try:
            response = self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            raise _client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e

        file_name = response.get("Metadata", {}).get(FILE_NAME_METADATA_KEY)
        return {
            "size": response.get("ContentLength"),
            "content_type": response.get("ContentType"),
            "file_name": unquote(file_name) if file_name else None,
        }

    def list(self, prefix):
        """File names directly under a directory prefix."""
        prefix = prefix.rstrip("/") + "/"
        try:
            response = self.s3_client.list_objects_v2(Bucket=self.bucket_name, Prefix=prefix)
        except ClientError as e:
            raise _client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e

        names = []
        for item in response.get("Contents", []):
            remainder = item["Key"][len(prefix):]
            if remainder and "/" not in remainder:
                names.append(remainder)
        return names

    def get_public_url(self, key):
        return f"{self.public_base_url}/{key}"

    def storage_path_from_public_url(self, url):
        if not isinstance(url, str):
            return None
        prefix = self.public_base_url + "/"
        if not url.startswith(prefix):
            return None
        path = url[len(prefix):].split("?", 1)[0]
        return path or None

    def remove(self, keys):
        try:
            self.s3_client.delete_objects(
                Bucket=self.bucket_name,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
            )
        except ClientError as e:
            raise _client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e


def head_public_url(url):
    """
    HTTP probe of a public object URL.
    True if it answers, False on 404/410, None when the result is unclear.
    """
    try:
        response = httpx.head(url, timeout=config.storage.probe_timeout, follow_redirects=True)
    except httpx.HTTPError as e:
        print(f"STORAGE: HEAD probe failed for {url}: {e}")
        return None

    if response.status_code in (404, 410):
        return False
    if response.is_success:
        return True
    return None


def presentation_object_exists(storage, storage_path, public_url):
    """
    Whether a submitted presentation object is still in storage.

    Lists the object's directory first; a listing that succeeds settles it.
    The public URL is probed only when the path can't be parsed or the
    listing fails. Only a confirmed absence returns False.
    """
    path = storage_path or storage.storage_path_from_public_url(public_url)

    if path and "/" in path:
        directory, file_name = posixpath.split(path)
        try:
            return file_name in storage.list(directory)
        except StorageError as e:
            if e.is_not_found:
                return False
            print(f"STORAGE: listing {directory} failed ({e.message}), probing public URL")

    if not public_url:
        return True

    return head_public_url(public_url) is not False
