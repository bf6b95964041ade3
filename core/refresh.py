"""Refresh cycle for the live dashboard.

A ``DashboardView`` owns the last good snapshot and the state of the most
recent cycle. ``PeriodicRefresher`` drives it: one refresh on start, then one
per interval until ``stop()``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from core.flow import FlowGraph, build_flow_graph
from core.metrics_overview import compute_overview
from core.records import FunnelEvent, Person

logger = logging.getLogger(__name__)

DEFAULT_ERROR = "Failed to load data from Airtable"


class RecordFetcher(Protocol):
    def fetch_people(self) -> List[Person]: ...

    def fetch_funnel_events(self) -> List[FunnelEvent]: ...


class RefreshState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class DashboardSnapshot:
    people: List[Person]
    events: List[FunnelEvent]
    graph: FlowGraph
    overview: Dict[str, Any]
    updated_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def fetch_records(fetcher: RecordFetcher) -> Tuple[List[Person], List[FunnelEvent]]:
    """Fetch people and funnel events concurrently; either failure fails both."""
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="airtable-fetch") as pool:
        people_future = pool.submit(fetcher.fetch_people)
        events_future = pool.submit(fetcher.fetch_funnel_events)
        return people_future.result(), events_future.result()


class DashboardView:
    def __init__(
        self,
        fetcher: RecordFetcher,
        *,
        onboarded_goal: int = 100,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._fetcher = fetcher
        self._onboarded_goal = onboarded_goal
        self._clock = clock
        self._lock = threading.Lock()
        self._closed = False
        self.state = RefreshState.IDLE
        self.snapshot: Optional[DashboardSnapshot] = None
        self.error: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_updated(self) -> Optional[datetime]:
        return self.snapshot.updated_at if self.snapshot else None

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def _load(self) -> DashboardSnapshot:
        people, events = fetch_records(self._fetcher)
        now = self._clock()
        graph = build_flow_graph(people)
        overview = compute_overview(people, events, now=now, onboarded_goal=self._onboarded_goal)
        return DashboardSnapshot(people=people, events=events, graph=graph, overview=overview, updated_at=now)

    def refresh(self) -> RefreshState:
        with self._lock:
            if self._closed:
                return self.state
            self.state = RefreshState.LOADING

        try:
            snapshot = self._load()
        except Exception as exc:
            logger.exception("dashboard refresh failed")
            with self._lock:
                if not self._closed:
                    # The previous snapshot stays in place; only the state flips.
                    self.error = str(exc) or DEFAULT_ERROR
                    self.state = RefreshState.ERROR
                return self.state

        with self._lock:
            if self._closed:
                logger.debug("discarding refresh result for closed view")
                return self.state
            self.snapshot = snapshot
            self.error = None
            self.state = RefreshState.READY
            return self.state


class PeriodicRefresher:
    def __init__(self, view: DashboardView, interval: float = 30.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.view = view
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "PeriodicRefresher":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run, name="dashboard-refresh", daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        while not self._stop.is_set():
            self.view.refresh()
            if self._stop.wait(self.interval):
                break

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        self.view.close()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def __enter__(self) -> "PeriodicRefresher":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
