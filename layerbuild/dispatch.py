"""Choosing the executable command for a parsed instruction."""

from __future__ import annotations

import logging
from typing import Optional

from layerbuild.base import DockerCommand
from layerbuild.filesystem import RunCommand, UserCommand, VolumeCommand, WorkdirCommand
from layerbuild.instructions import (
    ArgInstruction,
    CmdInstruction,
    EntrypointInstruction,
    EnvInstruction,
    ExposeInstruction,
    HealthCheckInstruction,
    Instruction,
    LabelInstruction,
    MaintainerInstruction,
    OnbuildInstruction,
    RunInstruction,
    ShellInstruction,
    StopSignalInstruction,
    UserInstruction,
    VolumeInstruction,
    WorkdirInstruction,
)
from layerbuild.metadata import (
    ArgCommand,
    CmdCommand,
    EntrypointCommand,
    HealthCheckCommand,
    OnBuildCommand,
    ShellCommand,
    StopSignalCommand,
)
from layerbuild.settings import EnvCommand, ExposeCommand, LabelCommand

logger = logging.getLogger(__name__)

_COMMANDS: dict[type, type[DockerCommand]] = {
    RunInstruction: RunCommand,
    ExposeInstruction: ExposeCommand,
    EnvInstruction: EnvCommand,
    WorkdirInstruction: WorkdirCommand,
    CmdInstruction: CmdCommand,
    EntrypointInstruction: EntrypointCommand,
    LabelInstruction: LabelCommand,
    UserInstruction: UserCommand,
    OnbuildInstruction: OnBuildCommand,
    VolumeInstruction: VolumeCommand,
    StopSignalInstruction: StopSignalCommand,
    ArgInstruction: ArgCommand,
    ShellInstruction: ShellCommand,
    HealthCheckInstruction: HealthCheckCommand,
}


class UnsupportedCommandError(ValueError):
    """The instruction has no executable command."""


def get_command(instruction: Instruction, build_context: str) -> Optional[DockerCommand]:
    """The command that executes instruction, or None for a deprecated one.

    build_context is where context files are read from; none of the
    commands available here read from it.
    """
    if isinstance(instruction, MaintainerInstruction):
        logger.warning("%s is deprecated, skipping", instruction.name)
        return None
    command_class = _COMMANDS.get(type(instruction))
    if command_class is None:
        raise UnsupportedCommandError(f"{instruction.name} is not a supported command")
    return command_class(instruction)