import asyncio

import pytest

from cadence.cascade.chain import Chain
from cadence.cascade.errors import BeatError
from cadence.cascade.scheduler import CascadeScheduler


def _record_ticks(chain, scheduler):
    ticks = {layer.order: [] for layer in chain}
    for index, layer in enumerate(chain):
        chain.channel(index).subscribe(lambda out, order=layer.order: ticks[order].append(scheduler.beat_count))
    return ticks


@pytest.mark.asyncio
async def test_beat_count_starts_at_zero_and_advances(recorder):
    scheduler = CascadeScheduler(Chain([1], recorder))
    assert scheduler.beat_count == 0
    assert await scheduler.advance_beat() == 1
    assert await scheduler.advance_beat() == 2
    assert scheduler.beat_count == 2


@pytest.mark.asyncio
async def test_first_ten_beats_tick_exact_sets(recorder):
    chain = Chain([1, 3, 9, 27], recorder)
    assert [layer.tick_frequency for layer in chain] == [2, 5, 23, 103]
    scheduler = CascadeScheduler(chain)
    ticks = _record_ticks(chain, scheduler)

    for _ in range(10):
        await scheduler.advance_beat()

    assert ticks == {1: [2, 4, 6, 8, 10], 3: [5, 10], 9: [], 27: []}


@pytest.mark.asyncio
async def test_slow_layer_emits_before_fast_layer_evaluates(recorder):
    chain = Chain([1, 3, 9, 27], recorder)
    scheduler = CascadeScheduler(chain)
    events = []

    head = chain.head
    original = head.should_tick

    def instrumented(beat):
        events.append(("evaluate", 1, beat))
        return original(beat)

    head.should_tick = instrumented
    chain.channel(3).subscribe(lambda out: events.append(("emit", 27, scheduler.beat_count)))

    for _ in range(103):
        await scheduler.advance_beat()

    on_beat = [e for e in events if e[2] == 103]
    assert on_beat == [("emit", 27, 103), ("evaluate", 1, 103)]


@pytest.mark.asyncio
async def test_downstream_feedback_reaches_upstream_prompt_same_beat(recorder):
    # frequencies 2 and 3: both tick on beat 6, tail first
    chain = Chain([1, 2], recorder)
    scheduler = CascadeScheduler(chain)

    for _ in range(6):
        await scheduler.advance_beat()

    tail_output_on_6 = chain.tail.last_output
    head_prompt_on_6 = recorder.prompts[-1]
    assert tail_output_on_6 in head_prompt_on_6
    assert chain.head.last_output == f"out-{len(recorder.prompts)}"


@pytest.mark.asyncio
async def test_upstream_output_is_seen_by_downstream_on_later_beat(recorder):
    chain = Chain([1, 2], recorder)
    scheduler = CascadeScheduler(chain)

    await scheduler.advance_beat()
    await scheduler.advance_beat()  # head ticks, output lands in tail queue
    assert chain.tail.pending == 1
    await scheduler.advance_beat()  # tail ticks on 3 and drains it

    assert chain.tail.pending == 0
    assert "out-1" in recorder.prompts[-1]


@pytest.mark.asyncio
async def test_stimulus_reaches_head_prompt(recorder):
    chain = Chain([1, 3, 9, 27], recorder)
    scheduler = CascadeScheduler(chain)
    chain.head.push("the kettle is boiling")

    await scheduler.advance_beat()
    assert recorder.prompts == []
    await scheduler.advance_beat()

    assert "the kettle is boiling" in recorder.prompts[0]


@pytest.mark.asyncio
async def test_failed_beat_leaves_state_and_advances_counter(make_recorder):
    gen = make_recorder(fail_on_calls={2})
    chain = Chain([1], gen)
    scheduler = CascadeScheduler(chain)
    emitted = []
    chain.channel(0).subscribe(emitted.append)

    await scheduler.advance_beat()
    await scheduler.advance_beat()
    await scheduler.advance_beat()
    assert chain.head.last_output == "out-1"

    with pytest.raises(BeatError) as excinfo:
        await scheduler.advance_beat()

    assert excinfo.value.beat_count == 4
    assert excinfo.value.order == 1
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert scheduler.beat_count == 4
    assert chain.head.last_output == "out-1"
    assert emitted == ["out-1"]

    # resumable: the next qualifying beat generates again
    await scheduler.advance_beat()
    assert await scheduler.advance_beat() == 6
    assert chain.head.last_output == "out-3"


@pytest.mark.asyncio
async def test_failure_aborts_rest_of_beat_and_keeps_upstream_queue(make_recorder):
    gen = make_recorder(fail_on_calls={1})
    chain = Chain([1, 2], gen)  # both tick on beat 6, tail first
    scheduler = CascadeScheduler(chain)
    for _ in range(5):
        try:
            await scheduler.advance_beat()
        except BeatError:
            pass
    chain.head.push("still here")

    calls_before = len(gen.prompts)
    gen.fail_on_calls = {calls_before + 1}
    with pytest.raises(BeatError) as excinfo:
        await scheduler.advance_beat()

    assert excinfo.value.order == 2
    assert len(gen.prompts) == calls_before + 1
    assert chain.head.pop_batch()[-1] == "still here"


@pytest.mark.asyncio
async def test_concurrent_beats_do_not_overlap():
    events = []

    async def slow_generate(prompt):
        events.append("start")
        await asyncio.sleep(0.01)
        events.append("end")
        return "ok"

    scheduler = CascadeScheduler(Chain([1], slow_generate))
    results = await asyncio.gather(*(scheduler.advance_beat() for _ in range(4)))

    assert sorted(results) == [1, 2, 3, 4]
    assert events == ["start", "end", "start", "end"]
