"""Commands that set environment variables, exposed ports and labels."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from layerbuild.base import DockerCommand
from layerbuild.buildargs import BuildArgs
from layerbuild.imageconfig import ImageConfig
from layerbuild.instructions import (
    EnvInstruction,
    ExposeInstruction,
    KeyValuePair,
    LabelInstruction,
)
from layerbuild.shell import resolve_environment_replacement

logger = logging.getLogger(__name__)

VALID_PROTOCOLS = ("tcp", "udp")


def _resolve_pairs(
    pairs: Iterable[KeyValuePair], replacement_envs: Sequence[str]
) -> list[KeyValuePair]:
    envs = list(replacement_envs)
    return [
        KeyValuePair(
            resolve_environment_replacement(pair.key, envs, False),
            resolve_environment_replacement(pair.value, envs, False),
        )
        for pair in pairs
    ]


def update_config_env(
    new_envs: Iterable[KeyValuePair], config: ImageConfig, replacement_envs: Sequence[str]
) -> None:
    """Set the given variables in config, keeping the order of existing ones."""
    resolved = _resolve_pairs(new_envs, replacement_envs)

    pairs = []
    for env in config.env:
        key, _, value = env.partition("=")
        pairs.append(KeyValuePair(key, value))
    position: dict[str, int] = {}
    for index, pair in enumerate(pairs):
        position.setdefault(pair.key, index)

    for new in resolved:
        if new.key in position:
            pairs[position[new.key]].value = new.value
        else:
            position[new.key] = len(pairs)
            pairs.append(KeyValuePair(new.key, new.value))

    config.env = [str(pair) for pair in pairs]


def valid_protocol(protocol: str) -> bool:
    """Whether a port may be exposed with this protocol."""
    return protocol in VALID_PROTOCOLS


def update_labels(
    labels: Iterable[KeyValuePair], config: ImageConfig, build_args: BuildArgs
) -> None:
    """Resolve every label, then apply them all to config."""
    envs = build_args.replacement_envs(config.env)
    resolved = _resolve_pairs(labels, envs)
    existing = config.labels if config.labels is not None else {}
    for pair in resolved:
        logger.info("Applying label %s=%s", pair.key, pair.value)
        existing[pair.key] = pair.value
    config.labels = existing


class EnvCommand(DockerCommand):
    """ENV: sets environment variables."""

    instruction: EnvInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        envs = build_args.replacement_envs(config.env)
        update_config_env(self.instruction.env, config, envs)


class ExposeCommand(DockerCommand):
    """EXPOSE: records the ports the container listens on."""

    instruction: ExposeInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        logger.info("cmd: EXPOSE")
        existing = config.exposed_ports if config.exposed_ports is not None else set()
        envs = build_args.replacement_envs(config.env)
        for port in self.instruction.ports:
            port = resolve_environment_replacement(port, envs, False)
            if "/" not in port:
                port += "/tcp"
            protocol = port.split("/")[1]
            if not valid_protocol(protocol):
                raise ValueError(f"Invalid protocol: {protocol}")
            logger.info("Adding exposed port: %s", port)
            existing.add(port)
        config.exposed_ports = existing


class LabelCommand(DockerCommand):
    """LABEL: adds metadata labels to the image."""

    instruction: LabelInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        update_labels(self.instruction.labels, config, build_args)