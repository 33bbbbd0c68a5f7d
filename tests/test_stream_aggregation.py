from types import SimpleNamespace

import pytest

from chat_relay.core.errors import ClientDisconnected
from chat_relay.services.chat_relay import aggregate_stream
from fakes import FakeStream, event, message_delta, message_start, text_delta


class DisconnectAfter:
    """Reports the caller gone once `checks` polls have been answered."""

    def __init__(self, checks):
        self.remaining = checks

    async def is_disconnected(self):
        if self.remaining <= 0:
            return True
        self.remaining -= 1
        return False


@pytest.mark.asyncio
async def test_text_deltas_concatenate_in_arrival_order():
    stream = FakeStream(
        [
            message_start(5),
            text_delta("Hel"),
            text_delta("lo"),
            text_delta(", world"),
            message_delta(4),
        ]
    )
    content, usage = await aggregate_stream(stream)
    assert content == "Hello, world"
    assert usage.input_tokens == 5
    assert usage.output_tokens == 4
    assert usage.total_tokens == 9


@pytest.mark.asyncio
async def test_unrecognised_events_and_non_text_deltas_are_ignored():
    stream = FakeStream(
        [
            message_start(3),
            event("content_block_start", index=0),
            event("ping"),
            text_delta("a"),
            event(
                "content_block_delta",
                delta=SimpleNamespace(type="input_json_delta", partial_json='{"x"'),
            ),
            event("some_future_event", payload="b"),
            text_delta("c"),
            event("content_block_stop", index=0),
            message_delta(2),
            event("message_stop"),
        ]
    )
    content, usage = await aggregate_stream(stream)
    assert content == "ac"
    assert (usage.input_tokens, usage.output_tokens) == (3, 2)


@pytest.mark.asyncio
async def test_output_tokens_take_last_message_delta_value():
    stream = FakeStream([message_delta(10), text_delta("x"), message_delta(7)])
    _, usage = await aggregate_stream(stream)
    assert usage.output_tokens == 7


@pytest.mark.asyncio
async def test_message_delta_without_usage_keeps_previous_count():
    stream = FakeStream([message_delta(6), message_delta(None)])
    _, usage = await aggregate_stream(stream)
    assert usage.output_tokens == 6


@pytest.mark.asyncio
async def test_missing_usage_leaves_counts_at_zero():
    stream = FakeStream([message_start(None), text_delta("hi")])
    content, usage = await aggregate_stream(stream)
    assert content == "hi"
    assert usage.input_tokens == 0
    assert usage.output_tokens == 0
    assert usage.total_tokens == 0


@pytest.mark.asyncio
async def test_usage_given_as_mapping_is_read():
    stream = FakeStream(
        [
            event("message_start", message=SimpleNamespace(usage={"input_tokens": 11})),
            event("message_delta", usage={"output_tokens": 4}),
        ]
    )
    _, usage = await aggregate_stream(stream)
    assert (usage.input_tokens, usage.output_tokens) == (11, 4)


@pytest.mark.asyncio
async def test_empty_stream_yields_empty_text():
    content, usage = await aggregate_stream(FakeStream([]))
    assert content == ""
    assert usage.total_tokens == 0


@pytest.mark.asyncio
async def test_disconnect_stops_consumption():
    stream = FakeStream([text_delta(str(i)) for i in range(10)])
    with pytest.raises(ClientDisconnected):
        await aggregate_stream(stream, disconnect_check=DisconnectAfter(2))
    assert stream.consumed == 3
