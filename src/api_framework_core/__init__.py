from .core import *  # noqa: F401,F403
from .commands import (
    command_build,
    command_diff,
    command_generate,
    command_snapshot,
    command_validate,
)
from .cli import build_parser, main
