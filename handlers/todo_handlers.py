"""HTTP handlers for the todo API."""

from __future__ import annotations

import json
import logging

from request import HTTPRequest
from response_writer import ResponseWriter, json_response, string_response
from router import Router
from todo_store import TodoNotFoundError, TodoStore

logger = logging.getLogger(__name__)

INVALID_JSON = "Invalid JSON Required Todo"
TODO_EMPTY = "Invalid JSON, No Todo Found"
TODO_NOT_FOUND = "Todo Not Found"


class TodoAPI:
    def __init__(self, *, store: TodoStore) -> None:
        self._store = store

    def register(self, router: Router) -> None:
        router.get("/todos", self.list_todos)
        router.post("/todos", self.create_todo)
        router.get("/todos/:id", self.get_todo)
        router.patch("/todos/:id", self.patch_todo)
        router.delete("/todos/:id", self.delete_todo)

    def list_todos(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        _ = request
        todos = self._store.list_todos()
        if not todos:
            string_response(writer, 404, TODO_EMPTY)
            return
        json_response(writer, 200, [todo.to_dict() for todo in todos])

    def create_todo(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        text = _read_todo_text(request)
        if text is None:
            string_response(writer, 400, INVALID_JSON)
            return
        if not text:
            string_response(writer, 400, TODO_EMPTY)
            return
        created = self._store.create(text)
        logger.debug("Created todo %s", created.id)
        json_response(writer, 202, created.to_dict())

    def get_todo(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        todo = self._store.get(request.path_param("id", ""))
        if todo is None:
            string_response(writer, 404, TODO_NOT_FOUND)
            return
        json_response(writer, 200, todo.to_dict())

    def patch_todo(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        todo_id = request.path_param("id", "")
        if self._store.get(todo_id) is None:
            string_response(writer, 400, TODO_NOT_FOUND)
            return
        text = _read_todo_text(request)
        if text is None:
            string_response(writer, 400, INVALID_JSON)
            return
        try:
            updated = self._store.update(todo_id, text)
        except TodoNotFoundError:
            # Deleted between the lookup and the update.
            string_response(writer, 400, TODO_NOT_FOUND)
            return
        json_response(writer, 202, updated.to_dict())

    def delete_todo(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        try:
            self._store.delete(request.path_param("id", ""))
        except TodoNotFoundError:
            string_response(writer, 400, TODO_NOT_FOUND)
            return
        writer.write_header(204)


def _read_todo_text(request: HTTPRequest) -> str | None:
    """Return the ``todo`` field of a JSON object body, or None if unreadable."""
    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if payload is None:
        return ""
    if not isinstance(payload, dict):
        return None
    text = payload.get("todo", "")
    if not isinstance(text, str):
        return None
    return text
