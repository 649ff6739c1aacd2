"""
Polling loop for a voting session.

`observation_stream` samples a count source at a fixed interval until it is
stopped or runs out of time; `SessionMonitor` runs that stream on a thread
and feeds every observation into the liveness service.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Iterator, Optional, List

from ..logger import get_logger
from ..models import Observation, ObservationResult
from .service import LivenessService

logger = get_logger(__name__)

# Returns the current person count, or None when there is no data this tick
CountSource = Callable[[], Optional[int]]


def observation_stream(
    source: CountSource,
    interval: float,
    stop_event: threading.Event,
    max_duration: Optional[float] = None,
    source_name: str = "video",
) -> Iterator[Observation]:
    """
    Yield one Observation per interval.

    Stops when `stop_event` is set or `max_duration` seconds have passed.
    Ticks where the source returns None or raises are skipped.
    """
    started = time.monotonic()
    while not stop_event.is_set():
        if max_duration is not None and time.monotonic() - started >= max_duration:
            return
        try:
            count = source()
        except Exception as e:
            logger.debug(f"Count source failed: {e}")
            count = None
        if count is not None:
            yield Observation(timestamp=time.time(), person_count=int(count), source=source_name)
        if stop_event.wait(interval):
            return


class SessionMonitor:
    """
    Background monitor for one voter's session.

    Usage:
        monitor = SessionMonitor(service, voter_id, camera_count)
        monitor.start()
        ...
        monitor.stop()
    """

    def __init__(
        self,
        service: LivenessService,
        voter_id: str,
        source: CountSource,
        candidate_id: Optional[str] = None,
        interval: Optional[float] = None,
        max_duration: Optional[float] = None,
        on_result: Optional[Callable[[ObservationResult], None]] = None,
    ):
        config = service.liveness_config
        self.service = service
        self.voter_id = voter_id
        self.source = source
        self.candidate_id = candidate_id
        self.interval = config.monitor_interval_sec if interval is None else interval
        self.max_duration = config.monitor_max_duration_sec if max_duration is None else max_duration
        self.on_result = on_result
        self.results: List[ObservationResult] = []
        self.error: Optional[BaseException] = None
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"voteguard-monitor-{voter_id}", daemon=True
        )

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> "SessionMonitor":
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        stream = observation_stream(self.source, self.interval, self._stop_event, self.max_duration)
        try:
            for observation in stream:
                session = self.service.get_session(self.voter_id)
                if session is not None and not session.active:
                    break
                result = self.service.on_observation(self.voter_id, observation, self.candidate_id)
                self.results.append(result)
                if self.on_result:
                    self.on_result(result)
                if result.invalidated:
                    break
        except Exception as e:
            self.error = e
            logger.error(f"Session monitor for {self.voter_id} stopped: {e}")
        finally:
            self._stop_event.set()
