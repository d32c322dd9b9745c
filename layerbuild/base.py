"""The interface every executable Dockerfile command follows."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Optional

from layerbuild.buildargs import BuildArgs
from layerbuild.imageconfig import ImageConfig
from layerbuild.instructions import Instruction


@dataclass
class DockerCommand(ABC):
    """A parsed instruction together with how it changes the image.

    The defaults describe a command that only touches image metadata.
    """

    instruction: Instruction

    # Files of the build context every instance of the command depends on.
    context_files: ClassVar[tuple[str, ...]] = ()
    # Command type that replays this one from a cached image, if any.
    cached_variant: ClassVar[Optional[type]] = None

    @abstractmethod
    def execute_command(self, config: ImageConfig, build_args: Optional[BuildArgs]) -> None:
        """Apply the command: change the filesystem and update config.

        The config history is left alone.
        """

    def files_to_snapshot(self) -> Optional[list[str]]:
        """Files to snapshot: empty for metadata commands, None when unknown."""
        return []

    def files_used_from_context(
        self, config: ImageConfig, build_args: Optional[BuildArgs]
    ) -> list[str]:
        """Files of the build context the command depends on."""
        return list(self.context_files)

    def metadata_only(self) -> bool:
        return True

    def requires_unpacked_fs(self) -> bool:
        return False

    def should_cache_output(self) -> bool:
        return False

    def cache_command(self, image) -> Optional["DockerCommand"]:
        """A command that replays this one from a cached image, if there is one."""
        variant = self.cached_variant
        if variant is None:
            return None
        return variant(instruction=self.instruction, image=image)

    def __str__(self) -> str:
        return str(self.instruction)