"""In-memory todo store guarded by a lock."""

from __future__ import annotations

import threading
import uuid
from dataclasses import asdict, dataclass


class TodoNotFoundError(LookupError):
    """Raised when a todo id is not present in the store."""

    def __init__(self, todo_id: str) -> None:
        super().__init__(f"todo not found: {todo_id}")
        self.todo_id = todo_id


@dataclass(frozen=True, slots=True)
class Todo:
    id: str
    todo: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


class TodoStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._todos: dict[str, Todo] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._todos)

    def list_todos(self) -> list[Todo]:
        with self._lock:
            return list(self._todos.values())

    def get(self, todo_id: str) -> Todo | None:
        with self._lock:
            return self._todos.get(todo_id)

    def create(self, text: str) -> Todo:
        todo = Todo(id=str(uuid.uuid4()), todo=text)
        with self._lock:
            self._todos[todo.id] = todo
        return todo

    def update(self, todo_id: str, text: str) -> Todo:
        with self._lock:
            if todo_id not in self._todos:
                raise TodoNotFoundError(todo_id)
            updated = Todo(id=todo_id, todo=text)
            self._todos[todo_id] = updated
            return updated

    def delete(self, todo_id: str) -> None:
        with self._lock:
            if self._todos.pop(todo_id, None) is None:
                raise TodoNotFoundError(todo_id)
