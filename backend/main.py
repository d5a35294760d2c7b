from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import json
import logging
import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from assistant import build_assistant
from config import settings
from dispatcher import Dispatcher
from logging_config import setup_logging
from models import A2ARequest, A2AResponse, ChatRequest, Priority, Status, Task, TaskUpdate
from store import TaskStore
import temporal

AGENT_NAME = "TaskTracker"

logger = logging.getLogger(__name__)

store = TaskStore()
dispatcher = Dispatcher(store, build_assistant(settings), timeout=settings.llm_timeout_sec)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    setup_logging(settings.log_level)
    logger.info("TaskPro started (assistant %s)", "enabled" if dispatcher.assistant else "disabled")
    yield
    # Shutdown (nothing to do, tasks live in memory only)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_update(task_data: TaskUpdate, now: datetime) -> dict:
    """Turn a PATCH body into store fields, resolving date strings."""
    updates = task_data.model_dump(exclude_unset=True)
    # Only description and due_date can be cleared with null
    for field in ("title", "status", "priority", "reminder_times"):
        if field in updates and updates[field] is None:
            del updates[field]
    if updates.get("due_date") is not None:
        resolved = temporal.resolve(updates["due_date"], now)
        if resolved is None:
            raise HTTPException(status_code=400, detail=f"Unrecognised due date: {updates['due_date']}")
        updates["due_date"] = resolved
    if updates.get("reminder_times") is not None:
        reminders = []
        for value in updates["reminder_times"]:
            resolved = temporal.resolve(value, now)
            if resolved is None:
                raise HTTPException(status_code=400, detail=f"Unrecognised reminder time: {value}")
            reminders.append(temporal.as_instant(resolved))
        updates["reminder_times"] = reminders
    return updates


@app.get("/health")
def health() -> dict:
    return {
        "status": "healthy",
        "timestamp": _now().isoformat(),
        "agent": AGENT_NAME,
    }


@app.get("/tasks")
def get_tasks(user_id: str, status: Optional[Status] = None, priority: Optional[Priority] = None) -> list[Task]:
    return store.list_tasks(user_id, status=status, priority=priority)


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, user_id: str, task_data: TaskUpdate) -> Task:
    now = _now()
    result = store.update(user_id, task_id, now, **_resolve_update(task_data, now))
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str, user_id: str) -> dict:
    # Only exact ids here; title matching is a chat convenience
    task = store.find(user_id, task_id)
    if not task or task.id.lower() != task_id.lower():
        raise HTTPException(status_code=404, detail="Task not found")
    store.delete(user_id, task.id)
    return {"status": "deleted"}


@app.post("/chat")
async def chat(chat_request: ChatRequest) -> dict:
    """Process one chat message and return the reply with the user's tasks."""
    response = await dispatcher.handle(chat_request.message, chat_request.user_id, _now())
    tasks = store.list_tasks(chat_request.user_id)
    return {"response": response, "tasks": [t.model_dump(mode="json") for t in tasks]}


@app.post("/a2a/agent/taskTracker")
async def a2a_task_tracker(request: Request) -> dict:
    """Agent-to-agent endpoint: one message in, one reply envelope out."""
    body = await request.body()
    try:
        payload = json.loads(body) if body.strip() else {}
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    logger.info("Received A2A request: %s", payload)

    # Empty JSON is how validators health-check the endpoint
    if not payload:
        return {
            "message": "A2A endpoint is healthy and ready",
            "timestamp": _now().isoformat(),
            "agentName": AGENT_NAME,
        }

    try:
        a2a_request = A2ARequest.model_validate(payload)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Missing required fields: messageId, userId, content")

    now = _now()
    content = await dispatcher.handle(a2a_request.content, a2a_request.user_id, now)
    a2a_response = A2AResponse(
        message_id=str(time.time_ns()),
        content=content,
        timestamp=now.isoformat(),
        metadata={
            "agentName": AGENT_NAME,
            "originalMessageId": a2a_request.message_id,
        },
    )
    return a2a_response.model_dump(by_alias=True)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
