import pytest

from layerbuild.base import DockerCommand
from layerbuild.imageconfig import ImageConfig
from layerbuild.instructions import UserInstruction


class _RecordingCommand(DockerCommand):
    def execute_command(self, config, build_args):
        config.user = self.instruction.user


def _command():
    return _RecordingCommand(UserInstruction(user="root", original="USER root"))


def test_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        DockerCommand(UserInstruction(user="root"))


def test_str_is_original_line():
    assert str(_command()) == "USER root"


def test_default_snapshot_files_are_empty():
    assert _command().files_to_snapshot() == []


def test_snapshot_list_is_fresh_each_call():
    cmd = _command()
    first = cmd.files_to_snapshot()
    first.append("/x")
    assert cmd.files_to_snapshot() == []


def test_default_context_files_are_empty():
    assert _command().files_used_from_context(ImageConfig(), None) == []


def test_default_flags():
    cmd = _command()
    assert cmd.metadata_only() is True
    assert cmd.requires_unpacked_fs() is False
    assert cmd.should_cache_output() is False


def test_default_has_no_cache_command():
    assert _command().cache_command(object()) is None


def test_subclass_executes():
    cfg = ImageConfig()
    _command().execute_command(cfg, None)
    assert cfg.user == "root"