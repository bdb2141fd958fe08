"""Application route table."""

from __future__ import annotations

from config import LOG_FORMAT
from handlers.example_handlers import health_check, ping
from handlers.todo_handlers import TodoAPI
from router import Router
from todo_store import TodoStore


def build_router(store: TodoStore | None = None, *, log_format: str = LOG_FORMAT) -> Router:
    router = Router(log_format=log_format)
    router.get("/health-check", health_check)
    router.get("/ping/:id/:otherid", ping)
    TodoAPI(store=store if store is not None else TodoStore()).register(router)
    return router
