from datetime import datetime
from decimal import Decimal

import pytest

from abap_adt_mcp.redaction import BLOCK_LIST, MAX_SAFE_INTEGER, normalize_scalar, redact


def _keys(value):
    if isinstance(value, dict):
        for key, item in value.items():
            yield key
            yield from _keys(item)
    elif isinstance(value, list):
        for item in value:
            yield from _keys(item)


NESTED = {
    "name": "ZCL_FOO",
    "links": [{"href": "/a"}],
    "etag": "123",
    "meta": {
        "changed_by": "DEV",
        "created_by": "DEV",
        "changed_at": "2024-01-01",
        "responsible": "DEV",
        "children": [
            {"name": "RUN", "parent_uri": "/p", "annex": {"x": 1}},
            ("tuple", {"links": []}),
        ],
    },
}


def test_block_listed_keys_removed_at_every_depth():
    cleaned = redact(NESTED)
    assert not set(_keys(cleaned)) & BLOCK_LIST
    assert cleaned["meta"]["responsible"] == "DEV"
    assert cleaned["meta"]["children"][0] == {"name": "RUN"}


def test_tuples_become_lists():
    cleaned = redact(NESTED)
    assert cleaned["meta"]["children"][1] == ["tuple", {}]


def test_redaction_is_idempotent():
    once = redact(NESTED)
    assert redact(once) == once


def test_input_is_not_mutated():
    data = {"links": [1], "keep": {"etag": "x"}}
    redact(data)
    assert data == {"links": [1], "keep": {"etag": "x"}}


def test_shared_subtrees_are_not_cycles():
    shared = {"name": "X"}
    assert redact({"a": shared, "b": [shared, shared]}) == {
        "a": {"name": "X"},
        "b": [{"name": "X"}, {"name": "X"}],
    }


def test_cycle_raises():
    data = {"name": "loop"}
    data["self"] = data
    with pytest.raises(ValueError, match="Circular reference"):
        redact(data)


@pytest.mark.parametrize(
    "value, expected",
    [
        (MAX_SAFE_INTEGER, MAX_SAFE_INTEGER),
        (MAX_SAFE_INTEGER + 1, str(MAX_SAFE_INTEGER + 1)),
        (-(2**63), str(-(2**63))),
        (True, True),
        (None, None),
        (1.5, 1.5),
        (b"REPORT z.", "REPORT z."),
        (datetime(2024, 1, 2, 3, 4, 5), "2024-01-02T03:04:05"),
        (Decimal("1.10"), "1.10"),
    ],
)
def test_normalize_scalar(value, expected):
    assert normalize_scalar(value) == expected


def test_custom_block_list():
    assert redact({"secret": 1, "links": 2}, block_list=frozenset({"secret"})) == {"links": 2}
