"""Options collected from the command line."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta

logger = logging.getLogger(__name__)


class MultiArg(list):
    """A flag value that may be given several times."""

    def set(self, value: str) -> None:
        """Append one more occurrence of the flag."""
        logger.debug("appending to multi args %s", value)
        self.append(value)

    def contains(self, value: str) -> bool:
        return value in self

    def __str__(self) -> str:
        return ",".join(self)


@dataclass
class KanikoOptions:
    """Options of the image executor."""

    dockerfile_path: str = ""
    src_context: str = ""
    snapshot_mode: str = ""
    snapshot_path_prefix: str = ""
    bucket: str = ""
    tar_path: str = ""
    target: str = ""
    cache_repo: str = ""
    cache_dir: str = ""
    destinations: MultiArg = field(default_factory=MultiArg)
    build_args: MultiArg = field(default_factory=MultiArg)
    insecure: bool = False
    skip_tls_verify: bool = False
    insecure_pull: bool = False
    skip_tls_verify_pull: bool = False
    single_snapshot: bool = False
    reproducible: bool = False
    no_push: bool = False
    cache: bool = False
    cleanup: bool = False
    cache_ttl: timedelta = field(default_factory=timedelta)
    insecure_registries: MultiArg = field(default_factory=MultiArg)
    skip_tls_verify_registries: MultiArg = field(default_factory=MultiArg)
    extra_whitelist_paths: MultiArg = field(default_factory=MultiArg)


@dataclass
class WarmerOptions:
    """Options of the cache warmer."""

    images: MultiArg = field(default_factory=MultiArg)
    cache_dir: str = ""