from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar, Any, cast
from flask import jsonify, session

F = TypeVar("F", bound=Callable[..., Any])


def instructor_required(func: F) -> F:
    """Decorator that requires a signed-in instructor.

    - If ``session['instructor_id']`` is set, proceeds to the view.
    - Otherwise, answers ``401`` with the usual JSON error envelope.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        if not session.get("instructor_id"):
            return jsonify({"ok": False, "error": "Sign in required"}), 401
        return func(*args, **kwargs)

    return cast(F, wrapper)
