import asyncio

from conftest import FakeEngine, FakeStore, FakeTranscriber, record_session
from lifewrap.app import build_application
from lifewrap.models import PeriodType
from lifewrap.services.events import EventKind


def test_recorded_session_flows_through_to_every_rollup(settings, console):
    store, engine, transcriber = FakeStore(), FakeEngine(), FakeTranscriber()
    application = build_application(settings, console, transcriber, store=store, engine=engine)
    received = []
    application.events.subscribe(received.append)
    session_id, chunks = record_session(store, chunk_texts=[["a"], ["b"], ["c"]], transcribed=False)

    async def scenario():
        for chunk in chunks:
            await application.queue.enqueue(chunk.id)
        await application.queue.wait_until_idle()

    asyncio.run(scenario())

    assert len(store.session_summaries(session_id)) == 1
    for level in (PeriodType.DAY, PeriodType.WEEK, PeriodType.MONTH, PeriodType.YEAR):
        assert len(store.period_summaries(level)) == 1, level
    kinds = {event.kind for event in received}
    assert EventKind.TRANSCRIPTION_STATUS_CHANGED in kinds
    assert EventKind.SUMMARIES_UPDATED in kinds
    assert application.guard.active_keys == frozenset()


def test_queue_is_only_built_with_a_transcriber(settings, console):
    application = build_application(settings, console, store=FakeStore(), engine=FakeEngine())

    assert application.queue is None
    assert application.summaries.guard is application.guard
