"""
Unit tests for binlog coordinates and version parsing.

Tests cover:
- Coordinate ordering
- Record parsing and rejection of malformed records
- Version extraction from server strings and tool banners
"""

import pytest

from dbaas.binlog_backup.binlog.base import LogCoordinate, format_version, parse_version
from dbaas.binlog_backup.errors import ParseError


class TestLogCoordinate:
    """Tests for LogCoordinate."""

    def test_orders_by_segment_then_offset(self):
        """Segment name dominates, offset breaks ties."""
        a = LogCoordinate("binlog.000005", 9000)
        b = LogCoordinate("binlog.000006", 4)
        c = LogCoordinate("binlog.000006", 120)

        assert a < b < c
        assert sorted([c, a, b]) == [a, b, c]

    def test_equal_coordinates(self):
        assert LogCoordinate("binlog.000007", 5000) == LogCoordinate("binlog.000007", 5000)

    def test_str_is_record_form(self):
        assert str(LogCoordinate("binlog.000005", 1200)) == "binlog.000005:1200"

    def test_parse_record(self):
        """Parses "<segment>:<offset>" with surrounding whitespace."""
        assert LogCoordinate.parse("binlog.000005:1200\n") == LogCoordinate("binlog.000005", 1200)

    @pytest.mark.parametrize(
        "raw",
        ["", "binlog.000005", "binlog.000005:1200:7", ":1200", "binlog.000005:", "binlog.000005:-4", "binlog.000005:abc"],
    )
    def test_parse_rejects_malformed(self, raw):
        """Anything but two fields with an integer offset is a ParseError."""
        with pytest.raises(ParseError):
            LogCoordinate.parse(raw)

    def test_negative_offset_rejected(self):
        with pytest.raises(ValueError):
            LogCoordinate("binlog.000001", -1)


class TestParseVersion:
    """Tests for version helpers."""

    def test_server_version_with_suffix(self):
        assert parse_version("8.0.36-0ubuntu0.22.04.1") == (8, 0, 36)

    def test_tool_banner(self):
        banner = "mysqldump  Ver 8.4.0 for Linux on x86_64 (MySQL Community Server - GPL)"
        assert parse_version(banner) == (8, 4, 0)

    def test_no_version(self):
        with pytest.raises(ValueError):
            parse_version("mysqldump: command not found")

    def test_format_version(self):
        assert format_version((8, 0, 36)) == "8.0.36"
