"""Commands that only change the image configuration."""

from __future__ import annotations

import logging
from typing import Optional

from layerbuild.base import DockerCommand
from layerbuild.buildargs import BuildArgs
from layerbuild.imageconfig import ImageConfig
from layerbuild.instructions import (
    ArgInstruction,
    CmdInstruction,
    EntrypointInstruction,
    HealthCheckInstruction,
    OnbuildInstruction,
    ShellInstruction,
    StopSignalInstruction,
)
from layerbuild.shell import (
    resolve_environment_replacement,
    resolve_environment_replacement_list,
)

logger = logging.getLogger(__name__)

DEFAULT_SHELL = ("/bin/sh", "-c")

_SIGNALS = {
    "ABRT": 6, "ALRM": 14, "BUS": 7, "CHLD": 17, "CLD": 17, "CONT": 18,
    "FPE": 8, "HUP": 1, "ILL": 4, "INT": 2, "IO": 29, "IOT": 6, "KILL": 9,
    "PIPE": 13, "POLL": 29, "PROF": 27, "PWR": 30, "QUIT": 3, "SEGV": 11,
    "STKFLT": 16, "STOP": 19, "SYS": 31, "TERM": 15, "TRAP": 5, "TSTP": 20,
    "TTIN": 21, "TTOU": 22, "UNUSED": 31, "URG": 23, "USR1": 10, "USR2": 12,
    "VTALRM": 26, "WINCH": 28, "XCPU": 24, "XFSZ": 25,
    "RTMIN": 34, "RTMAX": 64,
}
_SIGNALS.update({f"RTMIN+{n}": 34 + n for n in range(1, 16)})
_SIGNALS.update({f"RTMAX-{n}": 64 - n for n in range(1, 15)})


def parse_signal(value: str) -> int:
    """The number of a signal given by number or by name, with or without SIG."""
    try:
        number = int(value)
    except ValueError:
        name = value.upper()
        if name.startswith("SIG"):
            name = name[3:]
        try:
            return _SIGNALS[name]
        except KeyError:
            raise ValueError(f"Invalid signal: {value}") from None
    if number == 0:
        raise ValueError(f"Invalid signal: {value}")
    return number


def _shell_command(instruction, config: ImageConfig) -> list[str]:
    if not instruction.prepend_shell:
        return list(instruction.cmd_line)
    shell = list(config.shell) if config.shell else list(DEFAULT_SHELL)
    return shell + [" ".join(instruction.cmd_line)]


class CmdCommand(DockerCommand):
    """CMD: the default command of the container."""

    instruction: CmdInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        config.cmd = _shell_command(self.instruction, config)
        config.args_escaped = True


class EntrypointCommand(DockerCommand):
    """ENTRYPOINT: the executable the container starts."""

    instruction: EntrypointInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        config.entrypoint = _shell_command(self.instruction, config)


class ShellCommand(DockerCommand):
    """SHELL: the shell used for the shell form of later commands."""

    instruction: ShellInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        config.shell = list(self.instruction.shell)


class HealthCheckCommand(DockerCommand):
    """HEALTHCHECK: how the container's health is checked."""

    instruction: HealthCheckInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        health = self.instruction.health
        config.healthcheck = type(health)(
            test=list(health.test),
            interval=health.interval,
            timeout=health.timeout,
            start_period=health.start_period,
            retries=health.retries,
        )


class OnBuildCommand(DockerCommand):
    """ONBUILD: records a trigger for images built from this one."""

    instruction: OnbuildInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        expression = self.instruction.expression
        logger.info("cmd: ONBUILD")
        logger.info("args: %s", expression)
        if config.on_build is None:
            config.on_build = [expression]
        else:
            config.on_build.append(expression)


class StopSignalCommand(DockerCommand):
    """STOPSIGNAL: the signal that stops the container."""

    instruction: StopSignalInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        logger.info("cmd: STOPSIGNAL")
        envs = build_args.replacement_envs(config.env)
        stop_signal = resolve_environment_replacement_list(
            [self.instruction.signal], envs, False
        )[0]
        parse_signal(stop_signal)
        logger.info("Replacing StopSignal in config with %s", stop_signal)
        config.stop_signal = stop_signal


class ArgCommand(DockerCommand):
    """ARG: declares a build argument."""

    instruction: ArgInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        envs = build_args.replacement_envs(config.env)
        key = resolve_environment_replacement(self.instruction.key, envs, False)
        if self.instruction.value is not None:
            value = resolve_environment_replacement(self.instruction.value, envs, False)
        else:
            value = build_args.get_all_meta().get(key)
        build_args.add_arg(key, value)