"""
Conversation core for Skald.

Contains the state machine that drives a run, the stream aggregator that
rebuilds model responses from protocol events, and the tool dispatcher
that couples them. Nothing here performs I/O itself; transport and tool
bodies are supplied through ModelProvider and Tool.
"""

from skald.core.aggregator import StreamAggregator, aggregate_stream
from skald.core.callbacks import ConversationCallbacks
from skald.core.dispatcher import ToolDispatcher, format_tool_result_content
from skald.core.machine import ConversationRunner, ConversationStateMachine
from skald.core.nodes import NODE_STEPS, Deps, NodeKind, Transition
from skald.core.state import ConversationState

__all__ = [
    # Streaming
    "StreamAggregator",
    "aggregate_stream",
    # State machine
    "ConversationRunner",
    "ConversationState",
    "ConversationStateMachine",
    "Deps",
    "NODE_STEPS",
    "NodeKind",
    "Transition",
    # Tools
    "ToolDispatcher",
    "format_tool_result_content",
    # Observers
    "ConversationCallbacks",
]
