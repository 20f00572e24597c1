from .config import AgentConfig, load_config
from .loop import FALLBACK_REPLY, LoopState, TodoAgent
from .model import ChatModel, FallbackChatModel, ModelCallError, OpenAIChatModel

__all__ = [
    "AgentConfig",
    "ChatModel",
    "FALLBACK_REPLY",
    "FallbackChatModel",
    "LoopState",
    "ModelCallError",
    "OpenAIChatModel",
    "TodoAgent",
    "load_config",
]
