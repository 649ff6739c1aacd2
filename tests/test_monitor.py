import threading

from voteguard.liveness import SessionMonitor, observation_stream


def test_stream_skips_missing_and_failing_ticks():
    ticks = iter([None, "boom", 1, 2, 1])
    stop = threading.Event()

    def source():
        value = next(ticks)
        if value == "boom":
            raise RuntimeError("camera glitch")
        return value

    seen = []
    for observation in observation_stream(source, 0, stop):
        seen.append(observation)
        if len(seen) == 3:
            stop.set()

    assert [o.person_count for o in seen] == [1, 2, 1]
    assert all(o.source == "video" for o in seen)


def test_stream_respects_max_duration():
    stop = threading.Event()
    assert list(observation_stream(lambda: 1, 0, stop, max_duration=0)) == []


def test_monitor_stops_when_vote_invalidated(ctx):
    ctx.register_voter("V1")
    results = []

    monitor = SessionMonitor(
        ctx.liveness, "V1", lambda: 2, candidate_id="C1", interval=0.01, on_result=results.append
    )
    monitor.start()
    monitor.join(timeout=10)

    assert not monitor.running
    assert monitor.error is None
    assert len(monitor.results) == 2
    assert monitor.results[-1].invalidated
    assert results == monitor.results
    assert len(ctx.invalid_votes.list_by_voter("V1")) == 1


def test_monitor_stop(ctx):
    ctx.register_voter("V1")
    monitor = SessionMonitor(ctx.liveness, "V1", lambda: 1, interval=0.01).start()
    monitor.stop(timeout=10)

    assert not monitor.running
    assert monitor.error is None
    assert all(not r.invalidated for r in monitor.results)


def test_monitor_records_service_errors(ctx):
    monitor = SessionMonitor(ctx.liveness, "ghost", lambda: 1, interval=0.01).start()
    monitor.join(timeout=10)

    assert not monitor.running
    assert monitor.error is not None
    assert monitor.results == []
