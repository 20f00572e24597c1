from .conversations import ConversationStore, InMemoryConversationStore, RedisConversationStore
from .redis_store import RedisTaskStore
from .task_store import InMemoryTaskStore, TaskStore

__all__ = [
    "ConversationStore",
    "InMemoryConversationStore",
    "InMemoryTaskStore",
    "RedisConversationStore",
    "RedisTaskStore",
    "TaskStore",
]
