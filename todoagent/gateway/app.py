from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query, Response
from pydantic import BaseModel, Field, StrictBool

from todoagent.agent.loop import TodoAgent
from todoagent.models.task import TaskFilter
from todoagent.observability import configure_uvicorn_logging, get_json_logger, get_metrics
from todoagent.store.conversations import ConversationStore
from todoagent.store.task_store import TaskStore


class ChatRequest(BaseModel):
    conversation_id: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ConversationCreate(BaseModel):
    title: str | None = None


class TaskCreate(BaseModel):
    title: str
    description: str | None = None


class TaskUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    is_completed: StrictBool | None = None


class CompletionToggle(BaseModel):
    is_completed: StrictBool


def _require_user(x_user_id: str | None) -> str:
    # Identity is asserted by the upstream auth layer through this header
    user = (x_user_id or "").strip()
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def _require_owner(path_user_id: str, x_user_id: str | None) -> str:
    user = _require_user(x_user_id)
    if user != path_user_id:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return user


def _completed_to_filter(completed: bool | None) -> TaskFilter:
    if completed is None:
        return "all"
    return "completed" if completed else "pending"


def create_app(
    task_store: TaskStore,
    conversation_store: ConversationStore,
    agent: TodoAgent,
    *,
    history_limit: int = 20,
) -> FastAPI:
    app = FastAPI()
    # Configure uvicorn logging at app creation to avoid import-time side effects
    configure_uvicorn_logging()
    logger = get_json_logger("todoagent.gateway")
    metrics = get_metrics()

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        await task_store.aclose()
        await conversation_store.aclose()
        logger.info("gateway shutdown", extra={"event": "gateway_shutdown", "service": "gateway"})

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/ready")
    async def ready() -> dict[str, str]:
        return {"status": "ok"}

    # ----------------------------
    # Chat
    # ----------------------------

    @app.post("/chat")
    async def chat(
        body: ChatRequest, x_user_id: str | None = Header(default=None)
    ) -> dict[str, Any]:
        user_id = _require_user(x_user_id)
        prior = await conversation_store.get_history(user_id, body.conversation_id)
        history = [m.to_turn() for m in prior[-history_limit:]] if history_limit else []
        await conversation_store.add_message(user_id, body.conversation_id, "user", body.message)
        try:
            reply = await agent.run(body.message, user_id, history)
        except Exception as exc:
            logger.error(
                "chat agent error",
                extra={
                    "event": "gateway_error",
                    "path": "chat",
                    "conversation_id": body.conversation_id,
                    "metadata": {"error": str(exc)[:200]},
                },
            )
            metrics.increment("gateway_agent_errors", {"path": "chat"})
            raise HTTPException(status_code=502, detail="model call failed") from exc
        await conversation_store.add_message(
            user_id, body.conversation_id, "assistant", reply.text
        )
        return {
            "role": "assistant",
            "content": reply.text,
            "model": reply.model,
            "capped": reply.capped,
        }

    @app.get("/chat")
    async def chat_history(
        conversation_id: str = Query(min_length=1),
        x_user_id: str | None = Header(default=None),
    ) -> dict[str, Any]:
        user_id = _require_user(x_user_id)
        history = await conversation_store.get_history(user_id, conversation_id)
        return {"messages": [m.model_dump(mode="json") for m in history]}

    @app.get("/conversations")
    async def list_conversations(x_user_id: str | None = Header(default=None)) -> dict[str, Any]:
        user_id = _require_user(x_user_id)
        convs = await conversation_store.list_conversations(user_id)
        return {"conversations": [c.model_dump(mode="json") for c in convs]}

    @app.post("/conversations")
    async def create_conversation(
        body: ConversationCreate, x_user_id: str | None = Header(default=None)
    ) -> dict[str, Any]:
        user_id = _require_user(x_user_id)
        conv = await conversation_store.create_conversation(user_id, body.title or "New Chat")
        return conv.model_dump(mode="json")

    # ----------------------------
    # Tasks
    # ----------------------------

    @app.get("/api/{user_id}/tasks")
    async def list_tasks(
        user_id: str,
        completed: bool | None = None,
        x_user_id: str | None = Header(default=None),
    ) -> dict[str, Any]:
        _require_owner(user_id, x_user_id)
        tasks = await task_store.list_tasks(user_id, _completed_to_filter(completed))
        return {"tasks": [t.model_dump(mode="json") for t in tasks], "total": len(tasks)}

    @app.post("/api/{user_id}/tasks", status_code=201)
    async def create_task(
        user_id: str, body: TaskCreate, x_user_id: str | None = Header(default=None)
    ) -> dict[str, Any]:
        _require_owner(user_id, x_user_id)
        try:
            task = await task_store.create_task(user_id, body.title, body.description)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        logger.info("task created", extra={"event": "task_created", "user_id": user_id})
        return task.model_dump(mode="json")

    @app.get("/api/{user_id}/tasks/{task_id}")
    async def get_task(
        user_id: str, task_id: str, x_user_id: str | None = Header(default=None)
    ) -> dict[str, Any]:
        _require_owner(user_id, x_user_id)
        task = await task_store.get_task(user_id, task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return task.model_dump(mode="json")

    @app.put("/api/{user_id}/tasks/{task_id}")
    async def update_task(
        user_id: str,
        task_id: str,
        body: TaskUpdate,
        x_user_id: str | None = Header(default=None),
    ) -> dict[str, Any]:
        _require_owner(user_id, x_user_id)
        try:
            task = await task_store.update_task(
                user_id, task_id, title=body.title, description=body.description
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if task is not None and body.is_completed is not None:
            task = await task_store.set_completed(user_id, task_id, body.is_completed)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return task.model_dump(mode="json")

    @app.delete("/api/{user_id}/tasks/{task_id}", status_code=204)
    async def delete_task(
        user_id: str, task_id: str, x_user_id: str | None = Header(default=None)
    ) -> Response:
        _require_owner(user_id, x_user_id)
        task = await task_store.delete_task(user_id, task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return Response(status_code=204)

    @app.patch("/api/{user_id}/tasks/{task_id}/complete")
    async def toggle_completion(
        user_id: str,
        task_id: str,
        body: CompletionToggle,
        x_user_id: str | None = Header(default=None),
    ) -> dict[str, Any]:
        _require_owner(user_id, x_user_id)
        task = await task_store.set_completed(user_id, task_id, body.is_completed)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return task.model_dump(mode="json")

    return app


__all__ = ["create_app"]
