import pytest

from layerbuild.buildargs import BuildArgs
from layerbuild.dispatch import UnsupportedCommandError, get_command
from layerbuild.filesystem import RunCommand, UserCommand, VolumeCommand, WorkdirCommand
from layerbuild.imageconfig import ImageConfig
from layerbuild.instructions import parse_command
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


@pytest.mark.parametrize(
    "line, command_class",
    [
        ("RUN echo hi", RunCommand),
        ("CMD echo cmd1", CmdCommand),
        ("ENTRYPOINT echo cmd1", EntrypointCommand),
        ("EXPOSE 8080", ExposeCommand),
        ("ENV path=/some/path", EnvCommand),
        ("WORKDIR /a", WorkdirCommand),
        ("LABEL foo=bar", LabelCommand),
        ("USER root", UserCommand),
        ("ONBUILD COPY foo foo", OnBuildCommand),
        ("VOLUME /tmp", VolumeCommand),
        ("STOPSIGNAL SIGKILL", StopSignalCommand),
        ("ARG label", ArgCommand),
        ('SHELL ["/bin/bash", "-c"]', ShellCommand),
        ("HEALTHCHECK NONE", HealthCheckCommand),
    ],
)
def test_get_command_wraps_instruction(line, command_class):
    instruction = parse_command(line)
    command = get_command(instruction, "/workspace")
    assert isinstance(command, command_class)
    assert command.instruction is instruction
    assert str(command) == line


def test_maintainer_is_skipped():
    assert get_command(parse_command("MAINTAINER someone"), "/workspace") is None


@pytest.mark.parametrize("line, name", [("COPY a b", "copy"), ("ADD a b", "add")])
def test_unsupported_instruction(line, name):
    with pytest.raises(UnsupportedCommandError, match=f"{name} is not a supported command"):
        get_command(parse_command(line), "/workspace")


def test_dispatched_command_executes():
    cfg = ImageConfig()
    command = get_command(parse_command("EXPOSE 8080"), "/workspace")
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert cfg.exposed_ports == {"8080/tcp"}


def test_dispatched_shell_command_sets_shell():
    cfg = ImageConfig()
    command = get_command(parse_command('SHELL ["/bin/bash", "-c"]'), "")
    command.execute_command(cfg, None)
    assert cfg.shell == ["/bin/bash", "-c"]