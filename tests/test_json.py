"""A small JSON-like grammar exercising recursion, naming and hard errors."""

import asyncio

import pytest

from forkparse import (
    Incomplete,
    MismatchError,
    from_sequence,
    from_iterable,
    from_stream,
    parse,
    parse_async,
    AnyOf,
    One,
    Seq,
    Not,
    Define,
    And,
    Or,
    Repeat,
    Optional,
    Punctuated,
    Map,
    TryMap,
    Discard,
    Expected,
    Name,
)

SOURCE = """
{
    'a': 123.456,
    "b": [ true, { "c": "hello world"} ],
}
"""

EXPECTED = {"a": 123.456, "b": [True, {"c": "hello world"}]}

digit = AnyOf("0123456789")
comma = Name(One(","), "Comma")
spaces = Discard(Repeat(AnyOf(" \r\n\t")))

integer = Map(Repeat(digit, 1), "".join)

number = Name(TryMap(
    And(integer, Optional(And(Discard(One(".")), integer))),
    lambda whole, fraction: float(whole if fraction is None else f"{whole}.{fraction}"),
), "Number")

boolean = Name(Or(
    Map(Seq("true"), lambda _: True),
    Map(Seq("false"), lambda _: False),
), "Bool")

raw_string = Name(Map(
    Or(
        And(Discard(One('"')), Repeat(Not(One('"'))), Discard(One('"'))),
        And(Discard(One("'")), Repeat(Not(One("'"))), Discard(One("'"))),
    ),
    "".join,
), "String")

value = Define()

member = Map(
    And(spaces, raw_string, spaces, Discard(One(":")), value),
    lambda key, item: (key, item),
)

json_object = Name(Map(
    And(
        Discard(One("{")),
        Expected(
            And(Punctuated(member, comma), Discard(Optional(comma)), spaces, Discard(One("}"))),
            "Object",
        ),
    ),
    lambda members, separators: dict(members),
), "Object")

json_array = Name(Map(
    And(
        Discard(One("[")),
        Expected(
            And(Punctuated(value, comma), Discard(Optional(comma)), spaces, Discard(One("]"))),
            "Array",
        ),
    ),
    lambda items, separators: items,
), "Array")

value.define(Name(And(spaces, Or(json_object, json_array, raw_string, number, boolean), spaces), "Value"))


async def chunks(text, size):
    for i in range(0, len(text), size):
        await asyncio.sleep(0)
        yield text[i : i + size]


def test_parse_document():
    assert parse(value, SOURCE) == EXPECTED

@pytest.mark.parametrize("size", [1, 7, 64])
def test_parse_document_from_blocking_chunks(size):
    pieces = [SOURCE[i : i + size] for i in range(0, len(SOURCE), size)]
    assert parse(value, from_iterable(pieces, chunked=True)) == EXPECTED

@pytest.mark.asyncio
@pytest.mark.parametrize("size", [1, 7, 64])
async def test_parse_document_async(size):
    assert await parse_async(value, SOURCE) == EXPECTED
    assert await parse_async(value, from_stream(chunks(SOURCE, size), chunked=True)) == EXPECTED

@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("[]", []),
        ("[1,]", [1.0]),
        ("[ [ ], [[ 2 ]] ]", [[], [[2.0]]]),
        ("{}", {}),
        ("'it''s'", "it"),
        ("false", False),
    ],
)
def test_values(text, expected):
    assert parse(value, text) == expected

def test_unterminated_array():
    with pytest.raises(Incomplete) as ei:
        parse(value, "[1, 2")
    assert ei.value == Incomplete(5, "Array")

def test_missing_comma_in_object():
    with pytest.raises(Incomplete) as ei:
        parse(value, '{"a": 1 "b": 2}')
    assert ei.value == Incomplete(8, "Object")

def test_not_a_value():
    with pytest.raises(MismatchError) as ei:
        parse(value, "nul")
    assert str(ei.value) == "mismatching Value at 0"

def test_trailing_input_is_left():
    source = from_sequence("[1] rest")
    assert value.evaluate(source, None) == ([1.0],)
    assert source.position == 4
