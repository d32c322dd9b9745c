"""Where the build context comes from: a local directory or a storage bucket."""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import BinaryIO, Callable

from layerbuild import constants

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, str], BinaryIO]


class UnknownContextError(ValueError):
    """The build context names a scheme that is not supported."""


def get_bucket_and_item(context: str) -> tuple[str, str]:
    """Split ``bucket/path/to/item``; a bare bucket names the default context tarball."""
    bucket, _, item = context.partition("/")
    return bucket, item or constants.CONTEXT_TAR


def _gcs_fetch(bucket: str, item: str) -> BinaryIO:
    url = f"https://storage.googleapis.com/{bucket}/{urllib.parse.quote(item)}"
    request = urllib.request.Request(url)
    access = os.environ.get("GOOGLE_OAUTH_ACCESS_TOKEN")
    if access:
        request.add_header("Authorization", f"Bearer {access}")
    return urllib.request.urlopen(request)


def _s3_fetch(bucket: str, item: str) -> BinaryIO:
    url = f"https://{bucket}.s3.amazonaws.com/{urllib.parse.quote(item)}"
    return urllib.request.urlopen(url)


def _save(fetch: Fetcher, bucket: str, item: str, tar_path: str, mode: int) -> None:
    with fetch(bucket, item) as reader, open(tar_path, "wb") as out:
        shutil.copyfileobj(reader, out)
    os.chmod(tar_path, mode)
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        os.chown(tar_path, 0, 0)


def unpack_compressed_tar(tar_path: str, directory: str) -> None:
    """Extract a gzip-compressed tarball into directory."""
    with tarfile.open(tar_path, "r:gz") as archive:
        if hasattr(tarfile, "fully_trusted_filter"):
            archive.extractall(directory, filter="fully_trusted")
        else:
            archive.extractall(directory)


class BuildContext(ABC):
    """A source of build context files."""

    @abstractmethod
    def unpack_tar_from_build_context(self) -> str:
        """Make the context available on disk and return its directory."""


@dataclass
class DirContext(BuildContext):
    """A context that is already an extracted local directory."""

    context: str

    def unpack_tar_from_build_context(self) -> str:
        return self.context


@dataclass
class GCSContext(BuildContext):
    """A context tarball held in a Google Cloud Storage bucket."""

    context: str
    directory: str = constants.BUILD_CONTEXT_DIR
    fetch: Fetcher = field(default=_gcs_fetch, repr=False)

    def unpack_tar_from_build_context(self) -> str:
        bucket, item = get_bucket_and_item(self.context)
        os.makedirs(self.directory, exist_ok=True)
        tar_path = os.path.join(self.directory, constants.CONTEXT_TAR)
        _save(self.fetch, bucket, item, tar_path, 0o600)
        logger.debug(
            "Copied tarball %s from GCS bucket %s to %s", constants.CONTEXT_TAR, bucket, tar_path
        )
        logger.debug("Unpacking source context tar...")
        unpack_compressed_tar(tar_path, self.directory)
        # The tarball would otherwise interfere with later commands.
        logger.debug("Deleting %s", tar_path)
        os.remove(tar_path)
        return self.directory


@dataclass
class S3Context(BuildContext):
    """A context tarball held in an S3 bucket."""

    context: str
    directory: str = constants.BUILD_CONTEXT_DIR
    fetch: Fetcher = field(default=_s3_fetch, repr=False)

    def unpack_tar_from_build_context(self) -> str:
        bucket, item = get_bucket_and_item(self.context)
        os.makedirs(self.directory, 0o750, exist_ok=True)
        tar_path = os.path.join(self.directory, constants.CONTEXT_TAR)
        _save(self.fetch, bucket, item, tar_path, 0o644)
        unpack_compressed_tar(tar_path, self.directory)
        return self.directory


_CONTEXTS: dict[str, type[BuildContext]] = {
    constants.GCS_BUILD_CONTEXT_PREFIX: GCSContext,
    constants.S3_BUILD_CONTEXT_PREFIX: S3Context,
    constants.LOCAL_DIR_BUILD_CONTEXT_PREFIX: DirContext,
}


def get_build_context(src_context: str) -> BuildContext:
    """The build context named by a ``scheme://location`` string."""
    scheme, sep, location = src_context.partition("://")
    context_class = _CONTEXTS.get(scheme + sep) if sep else None
    if context_class is None:
        raise UnknownContextError(
            "unknown build context prefix provided, please use one of the following: "
            "gs://, dir://, s3://"
        )
    return context_class(location)