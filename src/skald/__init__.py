"""
Skald - tool-using conversation engine

Drives multi-turn conversations with a streaming text model that may call
local tools along the way.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("skald")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from skald.config import Settings  # noqa: E402
from skald.core import ConversationRunner, ConversationStateMachine  # noqa: E402
from skald.errors import AgentError  # noqa: E402

__all__ = [
    "__version__",
    "__version_info__",
    "AgentError",
    "ConversationRunner",
    "ConversationStateMachine",
    "Settings",
]
