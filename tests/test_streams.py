"""
Tests for reactive state cells.
"""

import asyncio

import pytest

from job_tracker.streams import StateStream


class TestStateStream:
    """Test value cells and subscriptions."""

    def test_subscribe_emits_current(self):
        stream = StateStream(1)
        seen = []

        stream.subscribe(seen.append)
        stream.set(2)

        assert seen == [1, 2]

    def test_equal_values_do_not_emit(self):
        stream = StateStream([1])
        seen = []
        stream.subscribe(seen.append, emit_current=False)

        assert stream.set([1]) is False
        assert stream.set([1, 2]) is True
        assert seen == [[1, 2]]

    def test_custom_equality(self):
        stream = StateStream(1, equals=lambda a, b: False)
        seen = []
        stream.subscribe(seen.append, emit_current=False)

        stream.set(1)

        assert seen == [1]

    def test_unsubscribe(self):
        stream = StateStream(0)
        seen = []
        subscription = stream.subscribe(seen.append, emit_current=False)

        subscription.unsubscribe()
        subscription.unsubscribe()
        stream.set(1)

        assert seen == []
        assert subscription.closed
        assert stream.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self):
        stream = StateStream(0)
        seen = []

        def broken(value):
            raise RuntimeError("boom")

        stream.subscribe(broken, emit_current=False)
        stream.subscribe(seen.append, emit_current=False)

        stream.set(1)

        assert stream.value == 1
        assert seen == [1]

    async def test_changes(self):
        stream = StateStream(0)
        values = []

        async def consume():
            async for value in stream.changes():
                values.append(value)
                if value == 2:
                    break

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        stream.set(1)
        stream.set(2)
        await asyncio.wait_for(task, timeout=1)

        assert values == [0, 1, 2]


class TestDerivedStream:
    """Test selector projections."""

    def test_select_tracks_source(self):
        stream = StateStream({"a": 1, "b": 1})
        derived = stream.select(lambda s: s["a"])
        seen = []
        derived.subscribe(seen.append)

        stream.set({"a": 1, "b": 2})
        stream.set({"a": 5, "b": 2})

        assert derived.value == 5
        assert seen == [1, 5]

    def test_read_only(self):
        derived = StateStream(1).select(lambda v: v * 2)

        with pytest.raises(TypeError):
            derived.set(3)

    def test_close_detaches_from_source(self):
        stream = StateStream(1)
        derived = stream.select(lambda v: v * 2)

        derived.close()
        stream.set(2)

        assert derived.value == 2
        assert stream.subscriber_count == 0
