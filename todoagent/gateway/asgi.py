from __future__ import annotations

from todoagent.agent.config import load_config
from todoagent.agent.factory import build_agent, build_stores

from .app import create_app

_config = load_config()
_task_store, _conversation_store = build_stores(_config)
app = create_app(
    _task_store,
    _conversation_store,
    build_agent(_config, _task_store),
    history_limit=_config.history_limit,
)
