import pytest

from forkparse import (
    Other,
    Source,
    Fork,
    SequenceBuffer,
    StreamBuffer,
    from_sequence,
    from_iterable,
    from_stream,
    to_source,
)


def test_read_fork_join_sequence():
    source = from_sequence(b"01234567")
    fork0 = source.fork()
    assert fork0.read(9) == b"01234567"

    fork1 = fork0.fork()
    fork1.consume(3)
    fork1.join()

    fork = fork0.fork()
    assert fork.read(3) == b"345"
    fork.consume(4)
    fork.close()

    fork0.consume(3)
    assert fork0.read(3) == b"67"
    fork0.join()

    assert source.read(3) == b"67"
    source.consume(2)
    assert source.read(5) == b""

def test_fork_join_without_consuming_is_a_noop():
    source = from_sequence("abc")
    source.consume(1)
    before = source.position
    source.fork().join()
    assert source.position == before == 1

@pytest.mark.parametrize("amount", range(6))
def test_dropped_fork_rolls_back(amount):
    source = from_sequence("abcde")
    fork = source.fork()
    assert len(fork.read(amount)) == amount
    fork.consume(amount)
    assert fork.position == amount
    del fork
    assert source.position == 0
    assert source.read(5) == "abcde"

def test_join_commits_one_level():
    source = from_sequence("abcdef")
    outer = source.fork()
    inner = outer.fork()
    inner.consume(2)
    inner.join()
    assert outer.position == 2
    assert source.position == 0
    outer.join()
    assert source.position == 2

def test_join_is_valid_once():
    source = from_sequence("abc")
    fork = source.fork()
    fork.join()
    with pytest.raises(RuntimeError):
        fork.join()
    with pytest.raises(RuntimeError):
        fork.read(1)

def test_fork_context_manager_rolls_back():
    source = from_sequence("abc")
    with source.fork() as fork:
        fork.consume(2)
    assert fork.closed
    assert source.position == 0

def test_consume_past_available_is_rejected():
    source = from_sequence("ab")
    with pytest.raises(ValueError):
        source.consume(3)
    fork = source.fork()
    fork.consume(1)
    with pytest.raises(ValueError):
        fork.consume(2)

def test_position_reflects_offset():
    source = from_sequence("abcdef")
    source.consume(2)
    fork = source.fork()
    fork.consume(3)
    assert fork.position == 5
    assert fork.available == 1
    assert source.available == 4


class TestStreamBuffer:
    def test_reads_lazily(self):
        pulled = []

        def feed():
            for c in "abcdef":
                pulled.append(c)
                yield c

        source = from_iterable(feed())
        assert source.read(2) == ["a", "b"]
        assert pulled == ["a", "b"]
        assert source.read(10) == list("abcdef")

    def test_chunked(self):
        source = from_iterable(["ab", "cd", "e"], chunked=True)
        assert source.read(3) == ["a", "b", "c"]
        source.consume(3)
        assert source.read(5) == ["d", "e"]

    def test_fork_look_ahead_stays_buffered(self):
        source = from_iterable(iter("abcdef"))
        fork = source.fork()
        assert fork.read(4) == list("abcd")
        fork.consume(3)
        assert source.available == 4
        assert source.read(1) == ["a"]
        fork.join()
        assert source.position == 3
        assert source.read(2) == ["d", "e"]

    def test_trims_consumed_items(self):
        source = from_iterable(range(3000))
        assert len(source.read(2000)) == 2000
        source.consume(1500)
        buffer = source.buffer
        assert isinstance(buffer, StreamBuffer)
        assert buffer.head == 0
        assert len(buffer.items) == 500
        assert source.position == 1500
        assert source.read(1) == [1500]

    def test_feed_failure_is_hard(self):
        def feed():
            yield "a"
            raise ValueError("connection lost")

        source = from_iterable(feed())
        assert source.read(1) == ["a"]
        with pytest.raises(Other) as ei:
            source.read(2)
        assert isinstance(ei.value.error, ValueError)
        assert str(ei.value) == "connection lost"

    def test_async_feed_cant_be_read_synchronously(self):
        async def feed():
            yield "a"

        source = from_stream(feed())
        with pytest.raises(TypeError):
            source.read(1)


def test_to_source():
    assert isinstance(to_source("abc").buffer, SequenceBuffer)
    assert isinstance(to_source(b"abc").buffer, SequenceBuffer)
    assert isinstance(to_source(iter("abc")).buffer, StreamBuffer)
    view = to_source(memoryview(b"abc"))
    assert view.read(3) == b"abc"
    assert isinstance(view.read(3), bytes)

    source = from_sequence("abc")
    assert to_source(source) is source
    fork = source.fork()
    assert to_source(fork) is fork
    assert isinstance(fork, Fork)
    assert isinstance(source, Source)

    with pytest.raises(TypeError):
        to_source(42)
