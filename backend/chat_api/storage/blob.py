"""
Attachment storage backends.

A blob store takes bytes plus a content type and a bucket-relative path and
returns a durable public URL. Paths are never overwritten.
"""
from __future__ import annotations

import logging
import os
from typing import Protocol
from urllib.parse import quote

import requests

from chat_api.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class BlobStore(Protocol):
    def put(self, bucket: str, path: str, data: bytes, mime_type: str) -> str:
        ...


class LocalBlobStore:
    """Stores objects on disk under ``root/<bucket>/<path>``."""

    def __init__(self, root: str, public_url: str):
        self.root = os.path.abspath(root)
        self.public_url = public_url.rstrip("/")

    def _target(self, bucket: str, path: str) -> str:
        target = os.path.abspath(os.path.join(self.root, bucket, path))
        if not target.startswith(self.root + os.sep):
            raise StorageError(f"Path escapes storage root: {path}")
        return target

    def put(self, bucket: str, path: str, data: bytes, mime_type: str) -> str:
        target = self._target(bucket, path)
        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            # "x" refuses to overwrite an existing object
            with open(target, "xb") as fh:
                fh.write(data)
        except OSError as e:
            raise StorageError(f"Failed to store {path}: {e}") from e

        return f"{self.public_url}/{quote(bucket)}/{quote(path)}"


class RemoteBlobStore:
    """
    Object-storage REST API:
      POST {api_url}/object/{bucket}/{path}   (upload, no upsert)
      GET  {api_url}/object/public/{bucket}/{path}   (public URL)
    """

    def __init__(self, api_url: str, api_key: str, timeout: float = 30.0):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def put(self, bucket: str, path: str, data: bytes, mime_type: str) -> str:
        object_path = f"{quote(bucket)}/{quote(path)}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "apikey": self.api_key,
            "Content-Type": mime_type,
            "x-upsert": "false",
        }
        try:
            resp = requests.post(
                f"{self.api_url}/object/{object_path}",
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"Failed to upload {path}: {e}") from e

        if resp.status_code not in (200, 201):
            raise StorageError(f"Failed to upload {path}: HTTP {resp.status_code}")

        return f"{self.api_url}/object/public/{object_path}"


def build_blob_store() -> BlobStore:
    if settings.blob_backend == "remote":
        return RemoteBlobStore(settings.storage_api_url, settings.storage_api_key)
    return LocalBlobStore(settings.storage_dir, settings.storage_public_url)


_blob_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = build_blob_store()
    return _blob_store
