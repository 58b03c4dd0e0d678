"""
Unit-of-work execution — bounded worker pool with cooperative cancellation.

Every metabolite and every reaction is an independent unit.  Units run on a
``ThreadPoolExecutor`` bounded by ``max_workers`` (the limit exists for the
external services' sake, not the CPU's).  A unit checks the cancellation
token when it starts; units that start after cancellation are reported as
cancelled and produce no record.  Results are merged by the calling thread
only after a unit completes, so no partial record is ever visible.

Usage::

    token = CancellationToken()
    results, cancelled = run_units(mets, reconcile_one, key=lambda m: m.met_id,
                                   max_workers=4, token=token)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

__all__ = ["CancellationToken", "run_units"]

logger = logging.getLogger(__name__)

_T = TypeVar("_T")
_R = TypeVar("_R")

_CANCELLED = object()


class CancellationToken:
    """Thread-safe flag requesting the pipeline to stop at the next unit."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def run_units(
    items: Iterable[_T],
    func: Callable[[_T], _R],
    *,
    key: Callable[[_T], str],
    max_workers: int = 1,
    token: Optional[CancellationToken] = None,
) -> Tuple[Dict[str, _R], List[str]]:
    """Run *func* over *items* and return ``(results by key, cancelled keys)``.

    Results are returned in input order regardless of completion order.
    Exceptions raised by *func* propagate; callers convert expected
    per-unit failures into records before returning.
    """
    items = list(items)

    def _guarded(item: _T):
        if token is not None and token.cancelled:
            return _CANCELLED
        return func(item)

    completed: Dict[str, object] = {}
    if max_workers <= 1:
        for item in items:
            completed[key(item)] = _guarded(item)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(_guarded, item): key(item) for item in items}
            for future in as_completed(futures):
                completed[futures[future]] = future.result()

    results: Dict[str, _R] = {}
    cancelled: List[str] = []
    for item in items:
        k = key(item)
        value = completed[k]
        if value is _CANCELLED:
            cancelled.append(k)
        else:
            results[k] = value
    if cancelled:
        logger.warning("Cancelled before start: %d unit(s)", len(cancelled))
    return results, cancelled
