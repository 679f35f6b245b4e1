import pytest

from ticketwatch.engines.watch.sequence import next_ticket_id


@pytest.mark.parametrize(
    "current, expected",
    [
        ("cab099", "cab100"),
        ("099", "100"),
        ("007", "008"),
        ("100000057470", "100000057471"),
        ("999", "1000"),
        ("AB0", "AB1"),
    ],
)
def test_next_ticket_id_keeps_prefix_and_padding(current, expected):
    assert next_ticket_id(current) == expected


@pytest.mark.parametrize(
    "malformed, expected",
    [
        ("", "1"),
        ("cab-12", "cab-121"),
        ("12ab", "12ab1"),
        ("abc", "abc1"),
        ("cab099\n", "cab099\n1"),
        ("\u0661\u0662", "\u0661\u06621"),
    ],
)
def test_malformed_ids_get_a_one_appended(malformed, expected):
    assert next_ticket_id(malformed) == expected
