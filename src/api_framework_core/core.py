from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_model import *  # noqa: F401,F403
from ._core_snapshot import *  # noqa: F401,F403
from ._core_collector import *  # noqa: F401,F403
from ._core_compare import *  # noqa: F401,F403
from ._core_codegen import *  # noqa: F401,F403
from ._core_orchestration import *  # noqa: F401,F403
