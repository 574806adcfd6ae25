import asyncio

import pytest

from forkparse import (
    Incomplete,
    MismatchError,
    Other,
    from_stream,
    from_iterable,
    parse,
    parse_async,
    parse_with_argument_async,
    Is,
    AnyOf,
    One,
    Seq,
    And,
    Or,
    Repeat,
    Punctuated,
    Map,
    TryMap,
    Discard,
    Expected,
    End,
)

digit = AnyOf("0123456789")
number = TryMap(Repeat(digit, 1), lambda digits: int("".join(digits)))
numbers = Map(
    And(Discard(One("[")), Expected(And(Punctuated(number, One(",")), Discard(One("]"))), "list")),
    lambda items, separators: items,
)


async def chunks(text, size=2):
    for i in range(0, len(text), size):
        await asyncio.sleep(0)
        yield text[i : i + size]


@pytest.mark.asyncio
@pytest.mark.parametrize("size", [1, 2, 3, 100])
async def test_stream_matches_in_memory(size):
    text = "[1,22,333,4444]"
    expected = parse(numbers, text)
    assert expected == [1, 22, 333, 4444]
    assert await parse_async(numbers, from_stream(chunks(text, size), chunked=True)) == expected
    assert await parse_async(numbers, text) == expected

@pytest.mark.asyncio
async def test_seq_produces_the_same_value_over_a_stream():
    keyword = Map(Seq("true"), lambda s: s == "true")
    assert parse(keyword, "true") is True
    assert parse(keyword, from_iterable(["tr", "ue"], chunked=True)) is True
    assert await parse_async(keyword, from_stream(chunks("true"), chunked=True)) is True

    source = from_stream(chunks("hello world"), chunked=True)
    assert await parse_async(Seq("hello"), source) == "hello"
    assert source.position == 5

@pytest.mark.asyncio
async def test_or_backtracks_over_stream():
    rule = Or(Seq("abd"), Seq("abc"))
    assert await parse_async(rule, from_stream(chunks("abc"), chunked=True)) == "abc"

@pytest.mark.asyncio
async def test_hard_error_short_circuits():
    calls = []

    def counting(item, arg):
        calls.append(item)
        return True

    rule = Or(numbers, Is(counting))
    with pytest.raises(Incomplete) as ei:
        await parse_async(rule, from_stream(chunks("[1,2"), chunked=True))
    assert ei.value == Incomplete(4, "list")
    assert calls == []

@pytest.mark.asyncio
async def test_mismatch_raises():
    with pytest.raises(MismatchError) as ei:
        await parse_async(numbers, from_stream(chunks("(1)"), chunked=True))
    assert str(ei.value) == "mismatch at 0"

@pytest.mark.asyncio
async def test_argument_is_threaded():
    below = Repeat(Is(lambda item, limit: int(item) < limit))
    assert await parse_with_argument_async(below, from_stream(chunks("1239"), chunked=True), 3) == ["1", "2"]

@pytest.mark.asyncio
async def test_feed_failure_is_hard():
    async def feed():
        yield "[1,"
        raise ConnectionError("connection reset")

    with pytest.raises(Other) as ei:
        await parse_async(numbers, from_stream(feed(), chunked=True))
    assert isinstance(ei.value.error, ConnectionError)

@pytest.mark.asyncio
async def test_blocking_feed_is_usable_from_async():
    source = from_iterable(["[1,", "2]"], chunked=True)
    assert await parse_async(numbers, source) == [1, 2]

@pytest.mark.asyncio
async def test_async_feed_cant_be_parsed_synchronously():
    with pytest.raises(TypeError):
        parse(numbers, from_stream(chunks("[1]"), chunked=True))

@pytest.mark.asyncio
async def test_trailing_separator_stays_in_stream():
    letters = Punctuated(AnyOf("abc"), One(","))
    source = from_stream(chunks("a,b,"), chunked=True)
    assert await parse_async(letters, source) == (["a", "b"], [","])
    assert source.position == 3
    assert await source.read_async(5) == [","]
    assert await parse_async(And(Discard(One(",")), End()), source) == ()
