import subprocess
from unittest import mock

import pytest

from layerbuild.buildargs import BuildArgs
from layerbuild.filesystem import (
    RunCommand,
    UserCommand,
    VolumeCommand,
    WorkdirCommand,
    add_default_home,
    get_user_from_username,
)
from layerbuild.imageconfig import ImageConfig
from layerbuild.instructions import (
    RunInstruction,
    UserInstruction,
    VolumeInstruction,
    WorkdirInstruction,
)


@pytest.mark.parametrize(
    "user, initial, expected",
    [
        ("", ["HOME=/something", "PATH=/something/else"], ["HOME=/something", "PATH=/something/else"]),
        ("", ["PATH=/something/else"], ["PATH=/something/else", "HOME=/root"]),
        ("newuser", ["PATH=/something/else"], ["PATH=/something/else", "HOME=/"]),
        ("root", ["PATH=/something/else"], ["PATH=/something/else", "HOME=/root"]),
    ],
)
def test_add_default_home(user, initial, expected):
    assert add_default_home(user, initial) == expected


def test_add_default_home_does_not_modify_input():
    initial = ["PATH=/bin"]
    add_default_home("", initial)
    assert initial == ["PATH=/bin"]


def test_run_sets_default_home_and_working_dir(tmp_path):
    cfg = ImageConfig(working_dir=str(tmp_path), env=["PATH=/usr/bin:/bin"])
    command = RunCommand(RunInstruction(cmd_line=['echo "$HOME" > home.txt'], prepend_shell=True))
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert (tmp_path / "home.txt").read_text() == "/root\n"


def test_run_exec_form(tmp_path):
    cfg = ImageConfig(working_dir=str(tmp_path), env=["PATH=/usr/bin:/bin"])
    command = RunCommand(
        RunInstruction(cmd_line=["/bin/sh", "-c", "echo made > made.txt"], prepend_shell=False)
    )
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert (tmp_path / "made.txt").read_text() == "made\n"


def test_run_failure_raises(tmp_path):
    cfg = ImageConfig(working_dir=str(tmp_path))
    command = RunCommand(RunInstruction(cmd_line=["exit 3"], prepend_shell=True))
    with pytest.raises(subprocess.CalledProcessError) as info:
        command.execute_command(cfg, BuildArgs.from_strings([]))
    assert info.value.returncode == 3


def test_run_command_properties():
    command = RunCommand(RunInstruction(cmd_line=["true"], prepend_shell=True))
    assert command.files_to_snapshot() is None
    assert command.metadata_only() is False
    assert command.requires_unpacked_fs() is True
    assert command.should_cache_output() is True


@pytest.mark.parametrize(
    "user, expected",
    [
        ("root", "root"),
        ("0", "0"),
        ("root:root", "root:root"),
        ("0:root", "0:root"),
        ("root:0", "root:0"),
        ("0:0", "0:0"),
        ("$envuser", "root"),
        ("root:$envgroup", "root:root"),
    ],
)
def test_update_user(user, expected):
    cfg = ImageConfig(env=["envuser=root", "envgroup=root"])
    command = UserCommand(UserInstruction(user=user))
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert cfg.user == expected


@pytest.mark.parametrize("user", ["fakeUser", "root:fakeGroup"])
def test_update_user_unknown(user):
    cfg = ImageConfig(env=["envuser=root", "envgroup=root"])
    command = UserCommand(UserInstruction(user=user))
    with pytest.raises(LookupError):
        command.execute_command(cfg, BuildArgs.from_strings([]))
    assert cfg.user == ""


def test_user_requires_unpacked_fs():
    assert UserCommand(UserInstruction(user="root")).requires_unpacked_fs() is True


def test_get_user_from_username():
    assert get_user_from_username("root", "") == ("0", "")
    assert get_user_from_username("0", "root") == ("0", "0")


def test_update_volume():
    cfg = ImageConfig(env=["VOLUME=/etc"], volumes=set())
    command = VolumeCommand(VolumeInstruction(volumes=["/tmp", "/var/lib", "$VOLUME"]))
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert cfg.volumes == {"/tmp", "/var/lib", "/etc"}


def test_volume_creates_missing_directory(tmp_path):
    target = tmp_path / "data" / "inner"
    cfg = ImageConfig()
    command = VolumeCommand(VolumeInstruction(volumes=[str(target)]))
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert target.is_dir()
    assert cfg.volumes == {str(target)}


@mock.patch("os.makedirs")
def test_workdir_command(makedirs):
    cases = [
        ("/a", "/a"),
        ("b", "/a/b"),
        ("c", "/a/b/c"),
        ("/d", "/d"),
        ("$path", "/d/usr"),
        ("$home", "/root"),
        ("$path/$home", "/root/usr/root"),
    ]
    cfg = ImageConfig(working_dir="/", env=["path=usr/", "home=/root"])
    for path, expected in cases:
        command = WorkdirCommand(WorkdirInstruction(path=path))
        command.execute_command(cfg, BuildArgs.from_strings([]))
        assert cfg.working_dir == expected


def test_workdir_creates_directory(tmp_path):
    target = tmp_path / "new"
    cfg = ImageConfig(working_dir=str(tmp_path))
    command = WorkdirCommand(WorkdirInstruction(path="new"))
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert target.is_dir()
    assert command.files_to_snapshot() == [str(target)]
    assert command.metadata_only() is False


def test_workdir_existing_directory_snapshots_nothing(tmp_path):
    cfg = ImageConfig()
    command = WorkdirCommand(WorkdirInstruction(path=str(tmp_path)))
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert cfg.working_dir == str(tmp_path)
    assert command.files_to_snapshot() is None