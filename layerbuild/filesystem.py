"""Commands that run programs or change the filesystem of the image."""

from __future__ import annotations

import grp
import logging
import os
import posixpath
import pwd
import signal
import subprocess
from dataclasses import dataclass, field
from typing import Optional

from layerbuild import constants
from layerbuild.base import DockerCommand
from layerbuild.buildargs import BuildArgs
from layerbuild.imageconfig import ImageConfig
from layerbuild.instructions import (
    RunInstruction,
    UserInstruction,
    VolumeInstruction,
    WorkdirInstruction,
)
from layerbuild.metadata import DEFAULT_SHELL
from layerbuild.shell import (
    resolve_environment_replacement,
    resolve_environment_replacement_list,
)

logger = logging.getLogger(__name__)

_MAX_ID = 0xFFFFFFFF


def _clean(path: str) -> str:
    if not path:
        return ""
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _parse_id(value: str) -> int:
    if not value.isdigit() or int(value) > _MAX_ID:
        raise ValueError(f"invalid user or group id: {value!r}")
    return int(value)


def get_user_from_username(user: str, group: str) -> tuple[str, str]:
    """Look up a user and an optional group by name or by id.

    Returns the uid and the gid as strings; the gid is empty without a group.
    """
    try:
        uid = pwd.getpwnam(user).pw_uid
    except KeyError:
        try:
            uid = pwd.getpwuid(int(user)).pw_uid
        except (KeyError, ValueError, OverflowError):
            raise LookupError(f"user: unknown user {user}") from None

    gid = ""
    if group:
        try:
            gid = str(grp.getgrnam(group).gr_gid)
        except KeyError:
            try:
                gid = str(grp.getgrgid(int(group)).gr_gid)
            except (KeyError, ValueError, OverflowError):
                raise LookupError(f"group: unknown group {group}") from None
    return str(uid), gid


def add_default_home(user: str, envs: list[str]) -> list[str]:
    """Return envs with HOME added when it is not set already."""
    if any(env.partition("=")[0] == constants.HOME for env in envs):
        return envs

    if user in ("", constants.ROOT_USER):
        return envs + [f"{constants.HOME}={constants.DEFAULT_HOME_VALUE}"]

    home = f"{constants.HOME}=/"
    try:
        name = pwd.getpwnam(user).pw_name
    except KeyError:
        pass
    else:
        home = f"{constants.HOME}=/home/{name}"
    return envs + [home]


def _command_line(instruction, config: ImageConfig) -> list[str]:
    if not instruction.prepend_shell:
        return list(instruction.cmd_line)
    shell = list(config.shell) if config.shell else list(DEFAULT_SHELL)
    return shell + [" ".join(instruction.cmd_line)]


class RunCommand(DockerCommand):
    """RUN: runs a program inside the filesystem being built."""

    instruction: RunInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        command = _command_line(self.instruction, config)
        logger.info("cmd: %s", command[0])
        logger.info("args: %s", command[1:])

        envs = build_args.replacement_envs(config.env)
        environment = {}
        for env in add_default_home(config.user, envs):
            key, _, value = env.partition("=")
            environment[key] = value

        credentials = {}
        if config.user:
            parts = config.user.split(":")
            group = parts[1] if len(parts) > 1 else ""
            uid, gid = get_user_from_username(parts[0], group)
            credentials["user"] = _parse_id(uid)
            credentials["group"] = _parse_id(gid) if gid else 0

        process = subprocess.Popen(
            command,
            cwd=config.working_dir or None,
            env=environment,
            start_new_session=True,
            **credentials,
        )
        pgid = os.getpgid(process.pid)
        returncode = process.wait()
        if returncode != 0:
            raise subprocess.CalledProcessError(returncode, command)

        # Leftover grandchildren are killed; there being none is fine.
        try:
            os.killpg(pgid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    def files_to_snapshot(self) -> Optional[list[str]]:
        return None

    def metadata_only(self) -> bool:
        return False

    def requires_unpacked_fs(self) -> bool:
        return True

    def should_cache_output(self) -> bool:
        return True


class UserCommand(DockerCommand):
    """USER: the user and group later commands run as."""

    instruction: UserInstruction

    def requires_unpacked_fs(self) -> bool:
        return True

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        logger.info("cmd: USER")
        parts = self.instruction.user.split(":")
        envs = build_args.replacement_envs(config.env)
        user = resolve_environment_replacement(parts[0], envs, False)
        group = ""
        if len(parts) > 1:
            group = resolve_environment_replacement(parts[1], envs, False)

        get_user_from_username(user, group)

        config.user = f"{user}:{group}" if group else user


class VolumeCommand(DockerCommand):
    """VOLUME: declares mount points, creating them when missing."""

    instruction: VolumeInstruction

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        logger.info("cmd: VOLUME")
        envs = build_args.replacement_envs(config.env)
        resolved = resolve_environment_replacement_list(self.instruction.volumes, envs, True)
        volumes = config.volumes if config.volumes is not None else set()
        for volume in resolved:
            volumes.add(volume)
            if not os.path.exists(volume):
                logger.info("Creating directory %s", volume)
                try:
                    os.makedirs(volume, 0o755, exist_ok=True)
                except OSError as err:
                    raise OSError(
                        f"Could not create directory for volume {volume}: {err}"
                    ) from err
        config.volumes = volumes


@dataclass
class WorkdirCommand(DockerCommand):
    """WORKDIR: changes the working directory, creating it when missing."""

    instruction: WorkdirInstruction
    _snapshot_files: Optional[list[str]] = field(default=None, init=False, repr=False)

    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        logger.info("cmd: workdir")
        envs = build_args.replacement_envs(config.env)
        resolved = resolve_environment_replacement(self.instruction.path, envs, True)
        if posixpath.isabs(resolved):
            config.working_dir = resolved
        else:
            config.working_dir = _clean(posixpath.join(config.working_dir, resolved))
        logger.info("Changed working directory to %s", config.working_dir)

        if not os.path.exists(config.working_dir):
            logger.info("Creating directory %s", config.working_dir)
            self._snapshot_files = [config.working_dir]
            os.makedirs(config.working_dir, 0o755, exist_ok=True)

    def files_to_snapshot(self) -> Optional[list[str]]:
        """The working directory if it had to be created."""
        return self._snapshot_files

    def metadata_only(self) -> bool:
        return False