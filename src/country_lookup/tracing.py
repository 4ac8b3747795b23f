from __future__ import annotations

"""Tracing fan-out to LangSmith and Langfuse.

Call sites use one decorator, `traceable`, which wraps the function with every
provider whose credentials are present in the environment and is a no-op
otherwise.
"""

import atexit
import os
from collections.abc import Callable
from typing import Any, TypeVar, cast

from langfuse import get_client as _langfuse_get_client
from langfuse import observe as _langfuse_observe
from langsmith import traceable as _langsmith_traceable


F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_PROJECT_NAME = "country-lookup"
_EXIT_FLUSH_REGISTERED = False


def _env_truthy(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def langsmith_enabled() -> bool:
    return _env_truthy("ENABLE_LANGSMITH_TRACING", True) and bool(os.getenv("LANGSMITH_API_KEY"))


def langfuse_enabled() -> bool:
    return (
        _env_truthy("ENABLE_LANGFUSE_TRACING", True)
        and bool(os.getenv("LANGFUSE_PUBLIC_KEY"))
        and bool(os.getenv("LANGFUSE_SECRET_KEY"))
    )


def _langfuse_as_type(run_type: Any) -> str | None:
    value = str(run_type).strip().lower() if run_type is not None else ""
    return value if value in {"tool", "chain", "span"} else None


def traceable(*args: Any, **kwargs: Any) -> Callable[[F], F]:
    """Return a decorator applying every enabled tracing provider.

    The first enabled provider (Langfuse, then LangSmith) ends up outermost.
    """
    decorators: list[Callable[[F], F]] = []

    if langfuse_enabled():
        lf_kwargs = dict(kwargs)
        as_type = _langfuse_as_type(lf_kwargs.pop("run_type", None))
        if as_type is not None:
            lf_kwargs["as_type"] = as_type
        decorators.append(cast(Callable[[F], F], _langfuse_observe(*args, **lf_kwargs)))

    if langsmith_enabled():
        decorators.append(cast(Callable[[F], F], _langsmith_traceable(*args, **kwargs)))

    def _decorator(func: F) -> F:
        wrapped = func
        for dec in reversed(decorators):
            wrapped = dec(wrapped)
        return wrapped

    return _decorator


def _flush_tracing_clients() -> None:
    if not langfuse_enabled():
        return
    try:
        _langfuse_get_client().flush()
    except Exception:  # noqa: BLE001
        # Exit-time flush; the process is going away either way.
        pass


def configure_tracing(project_name: str = DEFAULT_PROJECT_NAME) -> None:
    """Set provider defaults for whichever tracing backends have credentials."""
    global _EXIT_FLUSH_REGISTERED

    if langsmith_enabled():
        os.environ.setdefault("LANGSMITH_TRACING", "true")
        os.environ.setdefault("LANGSMITH_PROJECT", project_name)

    if langfuse_enabled():
        os.environ.setdefault("LANGFUSE_TRACING_ENABLED", "true")
        os.environ.setdefault("LANGFUSE_HOST", os.getenv("LANGFUSE_BASE_URL", "https://cloud.langfuse.com"))

    if not _EXIT_FLUSH_REGISTERED:
        atexit.register(_flush_tracing_clients)
        _EXIT_FLUSH_REGISTERED = True
