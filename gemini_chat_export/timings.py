"""Timing utilities for export performance profiling.

Enabled via the GEMINI_CHAT_EXPORT_DEBUG_TIMING environment variable; when it
is unset every helper here is a no-op.
"""

import os
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Union

# Set to "1", "true", or "yes" to enable timing output
DEBUG_TIMING = os.getenv("GEMINI_CHAT_EXPORT_DEBUG_TIMING", "").lower() in (
    "1",
    "true",
    "yes",
)

_timing_data: dict[str, Any] = {}


def set_timing_var(name: str, value: Any) -> None:
    """Set a timing variable (e.g. "_serializer_timings", "_current_msg_id")."""
    if DEBUG_TIMING:
        _timing_data[name] = value


def get_timing_var(name: str, default: Any = None) -> Any:
    return _timing_data.get(name, default)


@contextmanager
def log_timing(
    phase: Union[str, Callable[[], str]],
    t_start: Optional[float] = None,
) -> Iterator[None]:
    """Context manager printing the duration of one pipeline phase.

    Args:
        phase: Phase name, or a callable returning it (evaluated at the end)
        t_start: Optional pipeline start time, to also print the running total
    """
    if not DEBUG_TIMING:
        yield
        return

    t_phase_start = time.time()
    try:
        yield
    finally:
        t_now = time.time()
        phase_time = t_now - t_phase_start
        phase_name = phase() if callable(phase) else phase

        if t_start is not None:
            total_time = t_now - t_start
            print(
                f"[TIMING] {phase_name:40s} {phase_time:8.3f}s (total: {total_time:8.3f}s)",
                flush=True,
            )
        else:
            print(f"[TIMING] {phase_name:40s} {phase_time:8.3f}s", flush=True)


@contextmanager
def timing_stat(list_name: str) -> Iterator[None]:
    """Append the duration of the block to a timing list, if one was set up."""
    if not DEBUG_TIMING:
        yield
        return

    t_start = time.time()
    try:
        yield
    finally:
        duration = time.time() - t_start
        if list_name in _timing_data:
            msg_id = _timing_data.get("_current_msg_id", "")
            _timing_data[list_name].append((duration, msg_id))


def report_timing_statistics(
    operation_timings: list[tuple[str, list[tuple[float, str]]]],
) -> None:
    """Print totals and the slowest operations for each timing list."""
    for operation_name, timings in operation_timings:
        if timings:
            sorted_ops = sorted(timings, key=lambda x: x[0], reverse=True)
            total_time = sum(t[0] for t in timings)
            print(f"\n[TIMING] {operation_name}:", flush=True)
            print(f"[TIMING]   Total operations: {len(timings)}", flush=True)
            print(f"[TIMING]   Total time: {total_time:.3f}s", flush=True)
            print("[TIMING]   Slowest 5 operations:", flush=True)
            for duration, msg_id in sorted_ops[:5]:
                print(f"[TIMING]     {msg_id}: {duration * 1000:.1f}ms", flush=True)
