from .build import command_build
from .generation import command_generate
from .verification import command_diff, command_snapshot, command_validate

__all__ = [
    "command_build",
    "command_diff",
    "command_generate",
    "command_snapshot",
    "command_validate",
]
