"""Job registry for one-shot scheduling."""

from collections.abc import Callable
from typing import Any

from wakeme.scheduler.jobs import run_call_retry, track_bus_trips, track_train_trips

# Job registry mapping
_job_registry: dict[str, Callable[..., Any]] = {}


def register_job(name: str, func: Callable[..., Any]) -> None:
    """Register a job function."""
    _job_registry[name] = func


def get_job_function(name: str) -> Callable[..., Any]:
    """Get a job function by name."""
    if name not in _job_registry:
        raise ValueError(f"Job '{name}' not found in registry")
    return _job_registry[name]


register_job("track_bus_trips", track_bus_trips)
register_job("track_train_trips", track_train_trips)
register_job("run_call_retry", run_call_retry)
