import pytest

from layerbuild.buildargs import BuildArgs
from layerbuild.imageconfig import ImageConfig
from layerbuild.instructions import (
    EnvInstruction,
    ExposeInstruction,
    KeyValuePair,
    LabelInstruction,
)
from layerbuild.settings import (
    EnvCommand,
    ExposeCommand,
    LabelCommand,
    update_config_env,
    update_labels,
    valid_protocol,
)


def _build_args_with_defaults():
    build_args = BuildArgs.from_strings(["buildArg1=foo", "buildArg2=foo2"])
    build_args.add_arg("buildArg1", None)
    build_args.add_arg("buildArg2", "default")
    return build_args


def test_env_execute():
    cfg = ImageConfig(env=["path=/usr/", "home=/root"])
    command = EnvCommand(
        EnvInstruction(
            env=[
                KeyValuePair("path", "/some/path"),
                KeyValuePair("HOME", "$home"),
                KeyValuePair("$path", "$home/"),
                KeyValuePair("$buildArg1", "$buildArg2"),
            ]
        )
    )
    command.execute_command(cfg, _build_args_with_defaults())
    assert cfg.env == [
        "path=/some/path",
        "home=/root",
        "HOME=/root",
        "/usr/=/root/",
        "foo=foo2",
    ]


def test_update_config_env_appends_and_replaces_in_order():
    cfg = ImageConfig(env=["a=1"])
    update_config_env(
        [KeyValuePair("b", "2"), KeyValuePair("a", "3"), KeyValuePair("b", "4")], cfg, []
    )
    assert cfg.env == ["a=3", "b=4"]


def test_update_config_env_leaves_instruction_untouched():
    pairs = [KeyValuePair("$x", "$x")]
    cfg = ImageConfig()
    update_config_env(pairs, cfg, ["x=y"])
    assert cfg.env == ["y=y"]
    assert pairs == [KeyValuePair("$x", "$x")]


def test_update_exposed_ports():
    cfg = ImageConfig(exposed_ports={"8080/tcp"}, env=["port=udp", "num=8085"])
    ports = ["8080", "8081/tcp", "8082", "8083/udp", "8084/$port", "$num", "$num/$port"]
    command = ExposeCommand(ExposeInstruction(ports=ports))
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert cfg.exposed_ports == {
        "8080/tcp",
        "8081/tcp",
        "8082/tcp",
        "8083/udp",
        "8084/udp",
        "8085/tcp",
        "8085/udp",
    }


def test_invalid_protocol():
    cfg = ImageConfig(exposed_ports=set())
    command = ExposeCommand(ExposeInstruction(ports=["80/garbage"]))
    with pytest.raises(ValueError, match="Invalid protocol: garbage"):
        command.execute_command(cfg, BuildArgs.from_strings([]))


def test_expose_creates_port_set_when_missing():
    cfg = ImageConfig()
    ExposeCommand(ExposeInstruction(ports=["8080"])).execute_command(
        cfg, BuildArgs.from_strings([])
    )
    assert cfg.exposed_ports == {"8080/tcp"}


@pytest.mark.parametrize(
    "protocol, expected", [("tcp", True), ("udp", True), ("garbage", False), ("TCP", False)]
)
def test_valid_protocol(protocol, expected):
    assert valid_protocol(protocol) is expected


def test_update_labels():
    cfg = ImageConfig(labels={"foo": "bar"})
    labels = [
        KeyValuePair("foo", "override"),
        KeyValuePair("bar", "baz"),
        KeyValuePair("multiword", "lots\\ of\\ words"),
        KeyValuePair("backslashes", "lots\\\\ of\\\\ words"),
        KeyValuePair("$label", "foo"),
    ]
    build_args = BuildArgs.from_strings(["label=build_arg_label"])
    build_args.add_arg("label", None)
    update_labels(labels, cfg, build_args)
    assert cfg.labels == {
        "foo": "override",
        "bar": "baz",
        "multiword": "lots of words",
        "backslashes": "lots\\ of\\ words",
        "build_arg_label": "foo",
    }


def test_label_command_creates_labels():
    cfg = ImageConfig()
    command = LabelCommand(LabelInstruction(labels=[KeyValuePair("bar", "baz")]))
    command.execute_command(cfg, BuildArgs.from_strings([]))
    assert cfg.labels == {"bar": "baz"}