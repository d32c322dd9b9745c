"""Build arguments: values given on the command line and declared by ARG."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Optional

# Proxy arguments are allowed without being declared by an ARG instruction.
BUILTIN_ALLOWED_BUILD_ARGS = (
    "HTTP_PROXY",
    "http_proxy",
    "HTTPS_PROXY",
    "https_proxy",
    "FTP_PROXY",
    "ftp_proxy",
    "NO_PROXY",
    "no_proxy",
)


class BuildArgs:
    """Tracks which build arguments are declared and what they resolve to."""

    def __init__(self, args_from_options: Optional[Mapping[str, Optional[str]]] = None):
        self._args_from_options: dict[str, Optional[str]] = dict(args_from_options or {})
        self._allowed_build_args: dict[str, Optional[str]] = {}
        self._allowed_meta_args: dict[str, Optional[str]] = {}

    @classmethod
    def from_strings(cls, args: Iterable[str]) -> "BuildArgs":
        """Build from ``KEY=value`` strings; a bare ``KEY`` has no value."""
        parsed: dict[str, Optional[str]] = {}
        for arg in args:
            key, sep, value = arg.partition("=")
            parsed[key] = value if sep else None
        return cls(parsed)

    def clone(self) -> "BuildArgs":
        other = BuildArgs(self._args_from_options)
        other._allowed_build_args = dict(self._allowed_build_args)
        other._allowed_meta_args = dict(self._allowed_meta_args)
        return other

    def add_arg(self, key: str, value: Optional[str]) -> None:
        """Declare a build argument with an optional default."""
        self._allowed_build_args[key] = value

    def add_meta_arg(self, key: str, value: Optional[str]) -> None:
        """Declare an argument that appears before the first FROM."""
        self._allowed_meta_args[key] = value

    def add_meta_args(self, meta_args: Iterable) -> None:
        """Declare every ARG instruction (objects with key and value) as a meta argument."""
        for arg in meta_args:
            self.add_meta_arg(arg.key, arg.value)

    def get_all_meta(self) -> dict[str, str]:
        return self._all_from(self._allowed_meta_args)

    def _all_allowed(self) -> dict[str, str]:
        return self._all_from(self._allowed_build_args)

    def _all_from(self, mapping: Mapping[str, Optional[str]]) -> dict[str, str]:
        keys = list(mapping) + [k for k in BUILTIN_ALLOWED_BUILD_ARGS if k not in mapping]
        resolved = {}
        for key in keys:
            value = self._lookup(key, mapping)
            if value is not None:
                resolved[key] = value
        return resolved

    def _lookup(self, key: str, mapping: Mapping[str, Optional[str]]) -> Optional[str]:
        override = self._args_from_options.get(key)
        if override is not None:
            return override
        default = mapping.get(key)
        if default is None:
            return self._allowed_meta_args.get(key)
        return default

    def filter_allowed(self, envs: Iterable[str]) -> list[str]:
        """Return ``KEY=value`` for allowed arguments whose key is not set in envs."""
        taken = {env.partition("=")[0] for env in envs}
        return [f"{key}={value}" for key, value in self._all_allowed().items() if key not in taken]

    def replacement_envs(self, envs: Iterable[str]) -> list[str]:
        """The environment followed by allowed build arguments it does not set."""
        envs = list(envs)
        return envs + self.filter_allowed(envs)