"""Turning a Dockerfile into the stages that will be built."""

from __future__ import annotations

import dataclasses
import re
import urllib.request
from dataclasses import dataclass, field

from layerbuild import instructions
from layerbuild.instructions import ArgInstruction, CopyInstruction, Instruction, Stage
from layerbuild.options import KanikoOptions
from layerbuild.shell import resolve_environment_replacement

_REMOTE = re.compile(r"^https?://")


@dataclass
class KanikoStage:
    """A stage together with what the build needs to know about it."""

    stage: Stage
    base_image_index: int = -1
    final: bool = False
    base_image_stored_locally: bool = False
    save_stage: bool = False
    meta_args: list[ArgInstruction] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.stage.name

    @property
    def base_name(self) -> str:
        return self.stage.base_name

    @property
    def commands(self) -> list[Instruction]:
        return self.stage.commands


def parse(data) -> tuple[list[Stage], list[ArgInstruction]]:
    """Parse Dockerfile contents (bytes or text) into stages and meta args."""
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8")
    return instructions.parse(data)


def _read(path: str) -> str:
    try:
        if _REMOTE.match(path):
            with urllib.request.urlopen(path) as response:
                return response.read().decode("utf-8")
        with open(path, encoding="utf-8") as handle:
            return handle.read()
    except OSError as err:
        raise OSError(f"reading dockerfile at path {path}: {err}") from err


def stages(opts: KanikoOptions) -> list[KanikoStage]:
    """Read and parse the Dockerfile, returning the stages up to the target."""
    text = _read(opts.dockerfile_path)
    try:
        stage_list, meta_args = parse(text)
    except ValueError as err:
        raise ValueError(f"parsing dockerfile: {err}") from err
    target = target_stage(stage_list, opts.target)
    resolve_stages(stage_list)
    result = []
    for index, stage in enumerate(stage_list):
        try:
            resolved = resolve_environment_replacement(stage.base_name, list(opts.build_args), False)
        except ValueError as err:
            raise ValueError(f"resolving base name: {err}") from err
        base_index = base_image_index(index, stage_list)
        result.append(
            KanikoStage(
                stage=dataclasses.replace(stage, name=resolved),
                base_image_index=base_index,
                base_image_stored_locally=base_index != -1,
                save_stage=save_stage(index, stage_list),
                final=index == target,
                meta_args=meta_args,
            )
        )
        if index == target:
            break
    return result


def base_image_index(current_stage: int, stages: list[Stage]) -> int:
    """Index of the earlier stage the current one is built from, or -1."""
    wanted = stages[current_stage].base_name
    for i, stage in enumerate(stages[: current_stage + 1]):
        if stage.name == wanted:
            return i
    return -1


def target_stage(stages: list[Stage], target: str) -> int:
    """Index of the stage to build; the last one when no target is given."""
    if not target:
        return len(stages) - 1
    for i, stage in enumerate(stages):
        if stage.name == target:
            return i
    raise ValueError(f"{target} is not a valid target build stage")


def resolve_stages(stages: list[Stage]) -> None:
    """Rewrite COPY --from stage names into stage indices, in place."""
    name_to_index: dict[str, str] = {}
    for i, stage in enumerate(stages):
        index = str(i)
        if stage.name != index:
            name_to_index[stage.name] = index
        for cmd in stage.commands:
            if isinstance(cmd, CopyInstruction) and cmd.from_stage:
                cmd.from_stage = name_to_index.get(cmd.from_stage, cmd.from_stage)


def parse_commands(cmd_array) -> list[Instruction]:
    """Parse instruction lines, as stored for ONBUILD."""
    text = "\n".join(cmd_array)
    return [instructions.parse_command(line) for line in instructions._logical_lines(text)]


def save_stage(index: int, stages: list[Stage]) -> bool:
    """Whether a later stage builds from or copies out of this stage."""
    current = stages[index]
    for stage in stages[index + 1:]:
        if stage.base_name == current.name and stage.base_name:
            return True
        for cmd in stage.commands:
            if isinstance(cmd, CopyInstruction) and cmd.from_stage == str(index):
                return True
    return False