import pytest

from periscope.os_identifier import OSIdentifier, parse_os_identifier


@pytest.mark.parametrize(
    "text, expected",
    [("linux", OSIdentifier.LINUX), ("windows", OSIdentifier.WINDOWS)],
)
def test_parse_known_identifiers(text, expected):
    assert parse_os_identifier(text) is expected


def test_parsed_value_round_trips():
    for identifier in OSIdentifier:
        assert parse_os_identifier(identifier.value) is identifier


def test_parse_unknown_identifier_raises():
    with pytest.raises(ValueError, match="unknown OS identifier 'macos'"):
        parse_os_identifier("macos")


def test_parse_is_case_sensitive():
    with pytest.raises(ValueError):
        parse_os_identifier("Linux")


def test_parse_empty_raises():
    with pytest.raises(ValueError):
        parse_os_identifier("")