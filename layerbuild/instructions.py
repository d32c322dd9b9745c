"""Dockerfile syntax: logical lines, instructions and build stages."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import ClassVar, Optional

from layerbuild.imageconfig import HealthConfig

DEFAULT_ESCAPE = "\\"
_DIRECTIVE = re.compile(r"^#\s*([a-zA-Z][a-zA-Z0-9]*)\s*=\s*(.+?)\s*$")
_INSTRUCTION = re.compile(r"(\S+)\s*(.*)", re.S)
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": timedelta(microseconds=0.001),
    "us": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}


@dataclass
class KeyValuePair:
    key: str
    value: str

    def __str__(self) -> str:
        return f"{self.key}={self.value}"


@dataclass(kw_only=True)
class Instruction:
    """One instruction; its string form is the line it was parsed from."""

    name: ClassVar[str] = ""
    original: str = ""

    def __str__(self) -> str:
        return self.original


@dataclass(kw_only=True)
class _ShellDependent(Instruction):
    cmd_line: list[str] = field(default_factory=list)
    prepend_shell: bool = False


@dataclass(kw_only=True)
class RunInstruction(_ShellDependent):
    name: ClassVar[str] = "run"


@dataclass(kw_only=True)
class CmdInstruction(_ShellDependent):
    name: ClassVar[str] = "cmd"


@dataclass(kw_only=True)
class EntrypointInstruction(_ShellDependent):
    name: ClassVar[str] = "entrypoint"


@dataclass(kw_only=True)
class CopyInstruction(Instruction):
    name: ClassVar[str] = "copy"
    sources_and_dest: list[str] = field(default_factory=list)
    from_stage: str = ""
    chown: str = ""


@dataclass(kw_only=True)
class AddInstruction(Instruction):
    name: ClassVar[str] = "add"
    sources_and_dest: list[str] = field(default_factory=list)
    chown: str = ""


@dataclass(kw_only=True)
class ExposeInstruction(Instruction):
    name: ClassVar[str] = "expose"
    ports: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class EnvInstruction(Instruction):
    name: ClassVar[str] = "env"
    env: list[KeyValuePair] = field(default_factory=list)


@dataclass(kw_only=True)
class WorkdirInstruction(Instruction):
    name: ClassVar[str] = "workdir"
    path: str = ""


@dataclass(kw_only=True)
class LabelInstruction(Instruction):
    name: ClassVar[str] = "label"
    labels: list[KeyValuePair] = field(default_factory=list)


@dataclass(kw_only=True)
class UserInstruction(Instruction):
    name: ClassVar[str] = "user"
    user: str = ""


@dataclass(kw_only=True)
class OnbuildInstruction(Instruction):
    name: ClassVar[str] = "onbuild"
    expression: str = ""


@dataclass(kw_only=True)
class VolumeInstruction(Instruction):
    name: ClassVar[str] = "volume"
    volumes: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class StopSignalInstruction(Instruction):
    name: ClassVar[str] = "stopsignal"
    signal: str = ""


@dataclass(kw_only=True)
class ArgInstruction(Instruction):
    name: ClassVar[str] = "arg"
    key: str = ""
    value: Optional[str] = None


@dataclass(kw_only=True)
class ShellInstruction(Instruction):
    name: ClassVar[str] = "shell"
    shell: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class HealthCheckInstruction(Instruction):
    name: ClassVar[str] = "healthcheck"
    health: HealthConfig = field(default_factory=HealthConfig)


@dataclass(kw_only=True)
class MaintainerInstruction(Instruction):
    name: ClassVar[str] = "maintainer"
    maintainer: str = ""


@dataclass
class Stage:
    """The instructions following one FROM."""

    name: str
    base_name: str
    commands: list[Instruction] = field(default_factory=list)
    source_code: str = ""
    platform: str = ""


def _logical_lines(text: str) -> list[str]:
    """Join continuation lines and drop comments, honouring the escape directive."""
    escape = DEFAULT_ESCAPE
    lines = text.splitlines()
    start = 0
    for start, raw in enumerate(lines):
        match = _DIRECTIVE.match(raw.strip())
        if not match:
            break
        if match.group(1).lower() == "escape":
            if match.group(2) not in ("\\", "`"):
                raise ValueError(f"invalid ESCAPE '{match.group(2)}'. Must be ` or \\")
            escape = match.group(2)
    else:
        start = len(lines)

    result: list[str] = []
    buf: list[str] = []
    for raw in lines[start:]:
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        piece = raw.rstrip() if buf else stripped
        if piece.endswith(escape):
            buf.append(piece[: -len(escape)])
            continue
        buf.append(piece)
        result.append("".join(buf).strip())
        buf = []
    if buf:
        joined = "".join(buf).strip()
        if joined:
            result.append(joined)
    return result


def _split_words(text: str) -> list[str]:
    """Split on unquoted whitespace, keeping quotes and escapes in the words."""
    words: list[str] = []
    current: list[str] = []
    quote: Optional[str] = None
    chars = iter(text)
    for ch in chars:
        if ch == DEFAULT_ESCAPE and quote != "'":
            current.append(ch)
            current.append(next(chars, ""))
            continue
        if quote:
            if ch == quote:
                quote = None
            current.append(ch)
            continue
        if ch in "'\"":
            quote = ch
            current.append(ch)
        elif ch.isspace():
            if current:
                words.append("".join(current))
                current = []
        else:
            current.append(ch)
    if quote:
        raise ValueError(f"unterminated quote in: {text}")
    if current:
        words.append("".join(current))
    return words


def _json_list(rest: str) -> Optional[list[str]]:
    if not rest.startswith("["):
        return None
    try:
        value = json.loads(rest)
    except ValueError:
        return None
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    return None


def _take_flags(rest: str) -> tuple[dict[str, str], str]:
    flags: dict[str, str] = {}
    while rest.startswith("--"):
        token, _, rest = rest.partition(" ")
        rest = rest.lstrip()
        key, _, value = token[2:].partition("=")
        flags[key.lower()] = value
    return flags, rest


def _check_flags(keyword: str, flags: dict[str, str], allowed: set[str]) -> None:
    for key in flags:
        if key not in allowed:
            raise ValueError(f"unknown flag: {key} for {keyword}")


def _list_or_words(rest: str) -> list[str]:
    as_json = _json_list(rest)
    return as_json if as_json is not None else rest.split()


def _shell_dependent(cls, rest: str, line: str):
    as_json = _json_list(rest)
    if as_json is not None:
        return cls(cmd_line=as_json, prepend_shell=False, original=line)
    return cls(cmd_line=[rest], prepend_shell=True, original=line)


def _key_values(keyword: str, rest: str) -> list[KeyValuePair]:
    words = _split_words(rest)
    if not words:
        raise ValueError(f"{keyword} requires at least one argument")
    if "=" not in words[0]:
        key = words[0]
        value = rest[len(key):].strip()
        if not value:
            raise ValueError(f"{keyword} names can not be blank")
        return [KeyValuePair(key, value)]
    pairs = []
    for word in words:
        key, sep, value = word.partition("=")
        if not sep:
            raise ValueError(f"Syntax error - can't find = in {word!r}. Must be of the form: name=value")
        pairs.append(KeyValuePair(key, value))
    return pairs


def _parse_duration(value: str) -> timedelta:
    pos = 0
    total = timedelta()
    while pos < len(value):
        match = _DURATION_PART.match(value, pos)
        if not match:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if not value:
        raise ValueError("invalid duration ''")
    return total


def _healthcheck(rest: str, line: str) -> HealthCheckInstruction:
    flags, rest = _take_flags(rest)
    _check_flags("HEALTHCHECK", flags, {"interval", "timeout", "start-period", "retries"})
    kind, _, body = rest.partition(" ")
    kind = kind.upper()
    body = body.strip()
    if kind == "NONE":
        if body or flags:
            raise ValueError("HEALTHCHECK NONE takes no arguments")
        return HealthCheckInstruction(health=HealthConfig(test=["NONE"]), original=line)
    if kind != "CMD":
        raise ValueError(f"Unknown type {kind!r} in HEALTHCHECK (try CMD)")
    as_json = _json_list(body)
    test = ["CMD", *as_json] if as_json is not None else ["CMD-SHELL", body]
    health = HealthConfig(test=test)
    if "interval" in flags:
        health.interval = _parse_duration(flags["interval"])
    if "timeout" in flags:
        health.timeout = _parse_duration(flags["timeout"])
    if "start-period" in flags:
        health.start_period = _parse_duration(flags["start-period"])
    if "retries" in flags:
        health.retries = int(flags["retries"])
        if health.retries < 1:
            raise ValueError(f"--retries must be at least 1 (not {health.retries})")
    return HealthCheckInstruction(health=health, original=line)


def parse_command(line: str) -> Instruction:
    """Parse one logical line (not FROM) into its instruction."""
    line = line.strip()
    match = _INSTRUCTION.match(line)
    if not match:
        raise ValueError("empty instruction")
    keyword = match.group(1).lower()
    rest = match.group(2).strip()

    if keyword in ("run", "cmd", "entrypoint"):
        cls = {"run": RunInstruction, "cmd": CmdInstruction, "entrypoint": EntrypointInstruction}[keyword]
        return _shell_dependent(cls, rest, line)
    if keyword in ("copy", "add"):
        flags, rest = _take_flags(rest)
        allowed = {"from", "chown"} if keyword == "copy" else {"chown"}
        _check_flags(keyword.upper(), flags, allowed)
        args = _list_or_words(rest)
        if len(args) < 2:
            raise ValueError(f"{keyword.upper()} requires at least two arguments")
        if keyword == "copy":
            return CopyInstruction(
                sources_and_dest=args, from_stage=flags.get("from", ""),
                chown=flags.get("chown", ""), original=line,
            )
        return AddInstruction(sources_and_dest=args, chown=flags.get("chown", ""), original=line)
    if keyword == "expose":
        ports = rest.split()
        if not ports:
            raise ValueError("EXPOSE requires at least one argument")
        return ExposeInstruction(ports=ports, original=line)
    if keyword == "env":
        return EnvInstruction(env=_key_values("ENV", rest), original=line)
    if keyword == "label":
        return LabelInstruction(labels=_key_values("LABEL", rest), original=line)
    if keyword == "arg":
        words = rest.split()
        if len(words) != 1:
            raise ValueError("ARG requires exactly one argument")
        key, sep, value = words[0].partition("=")
        return ArgInstruction(key=key, value=value if sep else None, original=line)
    if keyword in ("workdir", "user", "stopsignal", "maintainer"):
        if not rest:
            raise ValueError(f"{keyword.upper()} requires exactly one argument")
        if keyword == "workdir":
            return WorkdirInstruction(path=rest, original=line)
        if keyword == "user":
            return UserInstruction(user=rest, original=line)
        if keyword == "stopsignal":
            return StopSignalInstruction(signal=rest, original=line)
        return MaintainerInstruction(maintainer=rest, original=line)
    if keyword == "volume":
        volumes = [v for v in _list_or_words(rest) if v.strip()]
        if not volumes:
            raise ValueError("VOLUME specified can not be an empty string")
        return VolumeInstruction(volumes=volumes, original=line)
    if keyword == "shell":
        shell = _json_list(rest)
        if not shell:
            raise ValueError("SHELL requires the arguments to be in JSON form")
        return ShellInstruction(shell=shell, original=line)
    if keyword == "onbuild":
        inner = rest.split(None, 1)[0].upper() if rest else ""
        if not inner:
            raise ValueError("ONBUILD requires at least one argument")
        if inner in ("ONBUILD", "FROM", "MAINTAINER"):
            raise ValueError(f"{inner} isn't allowed as an ONBUILD trigger")
        return OnbuildInstruction(expression=rest, original=line)
    if keyword == "healthcheck":
        return _healthcheck(rest, line)
    raise ValueError(f"unknown instruction: {keyword.upper()}")


def _parse_from(rest: str, line: str) -> Stage:
    flags, rest = _take_flags(rest)
    _check_flags("FROM", flags, {"platform"})
    words = rest.split()
    if len(words) == 1:
        name = ""
    elif len(words) == 3 and words[1].lower() == "as":
        name = words[2].lower()
    else:
        raise ValueError("FROM requires either one or three arguments")
    return Stage(name=name, base_name=words[0], source_code=line, platform=flags.get("platform", ""))


def parse(text: str) -> tuple[list[Stage], list[ArgInstruction]]:
    """Parse a Dockerfile into its stages and the ARGs before the first FROM."""
    stages: list[Stage] = []
    meta_args: list[ArgInstruction] = []
    lines = _logical_lines(text)
    if not lines:
        raise ValueError("file with no instructions")
    for line in lines:
        match = _INSTRUCTION.match(line)
        if match.group(1).lower() == "from":
            stages.append(_parse_from(match.group(2).strip(), line))
            continue
        instruction = parse_command(line)
        if stages:
            stages[-1].commands.append(instruction)
        elif isinstance(instruction, ArgInstruction):
            meta_args.append(instruction)
        else:
            raise ValueError("no build stage in current context")
    return stages, meta_args