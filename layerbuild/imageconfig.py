"""The runtime configuration of an image that instructions update."""

from __future__ import annotations

import copy as _copy
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional


@dataclass
class HealthConfig:
    """How the container is checked for health."""

    test: list[str] = field(default_factory=list)
    interval: timedelta = field(default_factory=timedelta)
    timeout: timedelta = field(default_factory=timedelta)
    start_period: timedelta = field(default_factory=timedelta)
    retries: int = 0


@dataclass
class ImageConfig:
    """Image configuration; None marks a field that was never set."""

    hostname: str = ""
    domainname: str = ""
    user: str = ""
    env: list[str] = field(default_factory=list)
    cmd: Optional[list[str]] = None
    entrypoint: Optional[list[str]] = None
    healthcheck: Optional[HealthConfig] = None
    args_escaped: bool = False
    image: str = ""
    volumes: Optional[set[str]] = None
    working_dir: str = ""
    exposed_ports: Optional[set[str]] = None
    labels: Optional[dict[str, str]] = None
    on_build: Optional[list[str]] = None
    stop_signal: str = ""
    shell: list[str] = field(default_factory=list)

    def copy(self) -> "ImageConfig":
        """Return a deep, independent copy."""
        return _copy.deepcopy(self)