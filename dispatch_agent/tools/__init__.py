"""Tools the assistant can call.

The gateway wraps the drone logistics backend's HTTP endpoints; the executor
maps a model tool-use request onto one gateway call and shapes the answer
for the model.
"""

from .backend import BackendError, BackendGateway
from .executor import ToolExecutor
from .schemas import TOOLS, ToolInputError, parse_tool_input

__all__ = [
    "BackendError",
    "BackendGateway",
    "ToolExecutor",
    "TOOLS",
    "ToolInputError",
    "parse_tool_input",
]
