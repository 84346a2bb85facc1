"""Tests for message framing and chunk reassembly."""

from itertools import combinations

import pytest

from xapi_mcp.errors import DecodeError
from xapi_mcp.protocol.framing import (
    MessageAccumulator,
    TERMINATOR,
    encode_message,
)


def _feed_all(chunks):
    """Feed chunks in order, returning every completed message."""
    acc = MessageAccumulator()
    messages = []
    for chunk in chunks:
        message = acc.feed(chunk)
        if message is not None:
            messages.append(message)
    return messages


def _split(data: bytes, cuts) -> list[bytes]:
    bounds = [0, *cuts, len(data)]
    return [data[a:b] for a, b in zip(bounds, bounds[1:])]


def test_terminator_is_two_newlines():
    """Messages end with two newline bytes."""
    assert TERMINATOR == b"\n\n"


def test_encode_message_appends_terminator():
    """Encoding appends the terminator after the JSON text."""
    assert encode_message('{"command":"logout"}') == b'{"command":"logout"}\n\n'


def test_encode_message_is_utf8():
    """Non-ASCII text is encoded as UTF-8."""
    assert encode_message('{"symbol":"ŻAB"}') == '{"symbol":"ŻAB"}'.encode("utf-8") + b"\n\n"


def test_encode_message_rejects_raw_newline():
    """A raw newline would end the message early on the wire."""
    with pytest.raises(ValueError):
        encode_message('{"a":\n1}')


def test_single_chunk_message():
    """A message arriving in one read is returned without the terminator."""
    assert _feed_all([b'{"status":true}\n\n']) == ['{"status":true}']


def test_incomplete_message_returns_none():
    """Nothing is returned until the terminator arrives."""
    acc = MessageAccumulator()
    assert acc.feed(b'{"status":') is None
    assert acc.feed(b"true}\n") is None
    assert acc.pending == len(b'{"status":true}\n')


@pytest.mark.parametrize(
    "cuts",
    [
        [1],
        [5, 10],
        [15],  # payload / terminator boundary
        [16],  # splits the terminator itself
        [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15, 16],
    ],
)
def test_chunk_boundaries_reconstruct_payload(cuts):
    """Hand-picked boundaries, including one inside the terminator."""
    payload = '{"status":true}'
    wire = encode_message(payload)
    assert _feed_all(_split(wire, cuts)) == [payload]


def test_every_two_cut_split_reconstructs_multibyte_payload():
    """Any three-chunk split of a non-ASCII message reassembles exactly."""
    payload = '{"status":true,"streamSessionId":"Złoty €"}'
    wire = encode_message(payload)
    for cuts in combinations(range(1, len(wire)), 2):
        assert _feed_all(_split(wire, cuts)) == [payload], cuts


def test_single_newline_inside_chunk_does_not_terminate():
    """One trailing newline is not a terminator."""
    acc = MessageAccumulator()
    assert acc.feed(b'{"a":1}\n') is None
    assert acc.feed(b"\n") == '{"a":1}'


def test_multibyte_character_split_across_chunks():
    """A UTF-8 character split between two reads is decoded correctly."""
    payload = '{"ctmString":"Dec 10, 2023, 7:00:00 AM","name":"Złoty"}'
    wire = encode_message(payload)
    split_at = wire.index("ł".encode("utf-8")) + 1
    assert _feed_all([wire[:split_at], wire[split_at:]]) == [payload]


def test_invalid_utf8_raises():
    """Bytes that can never be UTF-8 fail immediately."""
    acc = MessageAccumulator()
    with pytest.raises(DecodeError):
        acc.feed(b'{"status":\xff}\n\n')


def test_accumulator_reusable_after_message():
    """The accumulator starts fresh after returning a message."""
    acc = MessageAccumulator()
    assert acc.feed(b'{"a":1}\n\n') == '{"a":1}'
    assert acc.pending == 0
    assert acc.feed(b'{"b":2}\n\n') == '{"b":2}'


def test_reset_discards_partial_message():
    """Reset drops a half-received message."""
    acc = MessageAccumulator()
    acc.feed(b'{"stale":')
    acc.reset()
    assert acc.pending == 0
    assert acc.feed(b'{"fresh":1}\n\n') == '{"fresh":1}'
