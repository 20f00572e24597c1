from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from todoagent.agent.config import load_config
from todoagent.agent.factory import build_stores, run_agent_turn
from todoagent.tools.registry import tool_declarations


async def _chat_once(message: str, user_id: str, as_json: bool) -> int:
    cfg = load_config()
    if not cfg.api_key:
        sys.stderr.write("error: set OPENROUTER_API_KEY (or OPENAI_API_KEY) to chat.\n")
        return 1
    task_store, conversation_store = build_stores(cfg)
    try:
        reply = await run_agent_turn(cfg, task_store, message, user_id)
    finally:
        await task_store.aclose()
        await conversation_store.aclose()
    if as_json:
        sys.stdout.write(json.dumps(reply.model_dump(mode="json")) + "\n")
    else:
        sys.stdout.write(reply.text + "\n")
    return 0


def _serve(host: str, port: int) -> int:
    # Defer import to keep the CLI lightweight for non-server commands
    import uvicorn

    uvicorn.run("todoagent.gateway.asgi:app", host=host, port=port, log_config=None)
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser("todoagent")
    sub = parser.add_subparsers(dest="cmd")

    p_chat = sub.add_parser("chat", help="Send one message to the todo agent and print the reply")
    p_chat.add_argument("message")
    p_chat.add_argument("--user", required=True, help="Owner of the task list")
    p_chat.add_argument("--json", action="store_true", help="Print the full reply as JSON")

    p_serve = sub.add_parser("serve", help="Run the HTTP gateway under uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("tools", help="Print the tool declarations sent to the model")

    args: Any = parser.parse_args(argv)
    cmd = str(getattr(args, "cmd", "") or "")

    if cmd == "chat":
        raise SystemExit(asyncio.run(_chat_once(args.message, args.user, args.json)))

    if cmd == "serve":
        raise SystemExit(_serve(args.host, args.port))

    if cmd == "tools":
        sys.stdout.write(json.dumps(tool_declarations(), indent=2) + "\n")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
