"""Tests for src.core.parser — command argument parsing."""

import pytest

from src.core.errors import ValidationError
from src.core.parser import (
    parse_log_args,
    parse_prefs_args,
    parse_target_args,
    parse_window_args,
)


# ---------------------------------------------------------------------------
# /log
# ---------------------------------------------------------------------------


class TestParseLog:
    def test_amount_and_source(self):
        req = parse_log_args(["30", "greek", "yogurt"])
        assert req.amount == 30
        assert req.source == "greek yogurt"

    @pytest.mark.parametrize("token,expected", [("25g", 25), ("12,5", 12.5), ("40G", 40)])
    def test_amount_formats(self, token, expected):
        assert parse_log_args([token]).amount == expected

    def test_source_optional(self):
        assert parse_log_args(["10"]).source == ""

    def test_missing_args(self):
        with pytest.raises(ValidationError, match="Usage"):
            parse_log_args([])

    @pytest.mark.parametrize("token", ["abc", "0", "-5", "nan", "inf"])
    def test_bad_amount(self, token):
        with pytest.raises(ValidationError, match="Invalid amount"):
            parse_log_args([token])


# ---------------------------------------------------------------------------
# /target
# ---------------------------------------------------------------------------


class TestParseTarget:
    def test_valid(self):
        assert parse_target_args(["140"]).target == 140

    def test_usage(self):
        with pytest.raises(ValidationError, match="Usage"):
            parse_target_args(["140", "150"])

    def test_non_positive(self):
        with pytest.raises(ValidationError, match="positive"):
            parse_target_args(["0"])


# ---------------------------------------------------------------------------
# /window
# ---------------------------------------------------------------------------


class TestParseWindow:
    def test_valid_and_normalized(self):
        req = parse_window_args(["7:30-21:00"])
        assert (req.start, req.end) == ("07:30", "21:00")

    def test_spaces_between_tokens(self):
        req = parse_window_args(["08:00", "-", "20:00"])
        assert (req.start, req.end) == ("08:00", "20:00")

    def test_missing_separator(self):
        with pytest.raises(ValidationError, match="Usage"):
            parse_window_args(["08:00"])

    def test_end_before_start(self):
        with pytest.raises(ValidationError, match="must end after it starts"):
            parse_window_args(["20:00-08:00"])

    def test_malformed_time(self):
        with pytest.raises(ValidationError, match="Expected HH:MM"):
            parse_window_args(["8am-20:00"])


# ---------------------------------------------------------------------------
# /prefs
# ---------------------------------------------------------------------------


class TestParsePrefs:
    def test_skill_and_no_gos(self):
        req = parse_prefs_args(["Advanced", "fish,", "mushrooms"])
        assert req.cooking_skill == "advanced"
        assert req.no_gos == ["fish", "mushrooms"]

    def test_skill_only(self):
        assert parse_prefs_args(["pro"]).no_gos == []

    def test_unknown_skill(self):
        with pytest.raises(ValidationError, match="cooking skill must be one of"):
            parse_prefs_args(["chef"])

    def test_usage(self):
        with pytest.raises(ValidationError, match="Usage"):
            parse_prefs_args([])
