"""Persistence for the portfolio book.

The whole book is one JSON document. Where it lives is chosen by URI scheme:

``file:///path/to/portfolio.json``  -> local file (default, and used by tests)
``s3://bucket/key.json``            -> S3 object
``ssm://parameter-name``            -> Parameter Store entry

A store that does not exist yet, or cannot be read, loads as an empty document
so the first request still gets a valid book with a single default portfolio.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from urllib.parse import urlparse

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from portfolio_tracker.common.models import PortfolioBook

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Read and write a single JSON document."""

    def load(self) -> Dict[str, Any]:
        """Return the stored document or an empty dict."""

    def save(self, data: Dict[str, Any]) -> None:
        """Replace the stored document with ``data``."""


@dataclass
class FileDocumentStore:
    path: Path

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            logger.info("No portfolio file at %s; starting with an empty book", self.path)
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read %s: %s", self.path, exc)
            return {}

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)


@dataclass
class S3DocumentStore:
    bucket: str
    key: str
    client: Any | None = None

    def _client(self):
        if self.client is None:
            import boto3  # type: ignore

            self.client = boto3.client("s3")
        return self.client

    def load(self) -> Dict[str, Any]:
        try:
            obj = self._client().get_object(Bucket=self.bucket, Key=self.key)
            return json.loads(obj["Body"].read())
        except (ClientError, BotoCoreError, json.JSONDecodeError) as exc:
            logger.warning("S3 load failed for s3://%s/%s: %s", self.bucket, self.key, exc)
            return {}

    def save(self, data: Dict[str, Any]) -> None:
        self._client().put_object(
            Bucket=self.bucket,
            Key=self.key,
            Body=json.dumps(data).encode("utf-8"),
            ContentType="application/json",
        )


@dataclass
class ParameterStoreDocumentStore:
    name: str
    client: Any | None = None

    def _client(self):
        if self.client is None:
            import boto3  # type: ignore

            self.client = boto3.client("ssm")
        return self.client

    def load(self) -> Dict[str, Any]:
        try:
            resp = self._client().get_parameter(Name=self.name, WithDecryption=True)
            return json.loads(resp["Parameter"]["Value"])
        except (ClientError, BotoCoreError, json.JSONDecodeError) as exc:
            logger.warning("Parameter Store load failed for %s: %s", self.name, exc)
            return {}

    def save(self, data: Dict[str, Any]) -> None:
        self._client().put_parameter(
            Name=self.name,
            Value=json.dumps(data),
            Type="String",
            Overwrite=True,
        )


def get_store(uri: str) -> DocumentStore:
    """Return the :class:`DocumentStore` addressed by ``uri``.

    Relative ``file://`` paths resolve against the working directory.
    """
    parsed = urlparse(uri)
    scheme = parsed.scheme or "file"

    if scheme == "s3":
        if not parsed.netloc or not parsed.path.strip("/"):
            raise ValueError(f"S3 URI needs a bucket and key: {uri}")
        return S3DocumentStore(bucket=parsed.netloc, key=parsed.path.lstrip("/"))

    if scheme in {"ssm", "parameter"}:
        name = (parsed.netloc + parsed.path).lstrip("/")
        return ParameterStoreDocumentStore(name=name)

    if scheme == "file":
        path = parsed.path
        if parsed.netloc:
            path = os.path.join(parsed.netloc, path.lstrip("/"))
        if not os.path.isabs(path):
            path = os.path.join(os.getcwd(), path)
        return FileDocumentStore(path=Path(path))

    raise ValueError(f"Unsupported storage scheme: {scheme}")


# ───────────── book helpers ─────────────
def load_book(store: DocumentStore) -> PortfolioBook:
    """Load and validate the book, migrating legacy documents on the way.

    A document that fails validation raises ``pydantic.ValidationError``;
    silently replacing it would discard the user's holdings on next save.
    """
    data = store.load()
    try:
        return PortfolioBook.model_validate(data)
    except ValidationError:
        logger.error("Stored portfolio document is invalid")
        raise


def save_book(store: DocumentStore, book: PortfolioBook) -> None:
    store.save(book.to_document())
    logger.debug("Saved book with %d portfolios", len(book.portfolios))


def default_store(uri: Optional[str] = None) -> DocumentStore:
    from portfolio_tracker.config import config

    return get_store(uri or config.portfolio_store_uri)


__all__ = [
    "DocumentStore",
    "FileDocumentStore",
    "S3DocumentStore",
    "ParameterStoreDocumentStore",
    "get_store",
    "default_store",
    "load_book",
    "save_book",
]
