import pytest

from anyscribe.events.hub import EventHub
from anyscribe.transcription.models import (
    CancelledEvent,
    ErrorEvent,
    ProgressEvent,
)

from conftest import BrokenSubscriber, RecordingSubscriber

pytestmark = pytest.mark.anyio


async def test_firehose_receives_every_job():
    hub = EventHub()
    everything = RecordingSubscriber()
    hub.subscribe_all(everything)

    await hub.publish(ProgressEvent(job_id="a", progress=5))
    await hub.publish(ProgressEvent(job_id="b", progress=7))

    assert [e["jobId"] for e in everything.events] == ["a", "b"]
    assert everything.events[0] == {"type": "progress", "jobId": "a", "progress": 5}


async def test_topic_subscriber_only_sees_its_job():
    hub = EventHub()
    only_a = RecordingSubscriber()
    await hub.subscribe_job("a", only_a)

    await hub.publish(ProgressEvent(job_id="a", progress=5))
    await hub.publish(ErrorEvent(job_id="b", message="boom"))

    assert [e["jobId"] for e in only_a.events] == ["a"]


async def test_late_subscriber_gets_latest_event_replayed():
    hub = EventHub()
    await hub.publish(ProgressEvent(job_id="a", progress=5))
    await hub.publish(ProgressEvent(job_id="a", progress=12))
    await hub.publish(ErrorEvent(job_id="a", message="Transcription failed with code 1"))

    late = RecordingSubscriber()
    await hub.subscribe_job("a", late)

    assert late.events == [
        {"type": "error", "jobId": "a", "message": "Transcription failed with code 1"}
    ]


async def test_dead_subscriber_is_dropped():
    hub = EventHub()
    good, bad = RecordingSubscriber(), BrokenSubscriber()
    hub.subscribe_all(good)
    hub.subscribe_all(bad)

    await hub.publish(CancelledEvent(job_id="a"))
    await hub.publish(CancelledEvent(job_id="b"))

    assert len(good.events) == 2
    assert hub.subscriber_count == 1


async def test_unsubscribe_removes_from_all_topics():
    hub = EventHub()
    sub = RecordingSubscriber()
    hub.subscribe_all(sub)
    await hub.subscribe_job("a", sub)
    hub.unsubscribe(sub)

    await hub.publish(ProgressEvent(job_id="a", progress=1))

    assert sub.events == []
    assert hub.subscriber_count == 0


async def test_replay_cache_evicts_finished_jobs_first():
    hub = EventHub(replay_limit=2)
    await hub.publish(ProgressEvent(job_id="running", progress=3))
    await hub.publish(CancelledEvent(job_id="done-1"))
    await hub.publish(CancelledEvent(job_id="done-2"))

    assert hub.latest("running") is not None
    assert hub.latest("done-1") is None
    assert hub.latest("done-2") is not None
