"""Tests for query parameter parsing of the read endpoints."""

from urllib.parse import parse_qs

import pytest

from sprite_telemetry.adapters.frameworks.query_params import (
    _parse_kinds_param,
    _parse_limit_param,
    _parse_minutes_param,
)
from sprite_telemetry.core.models import EventKind


class TestParseLimitParam:
    """Tests for _parse_limit_param()."""

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_missing_defaults_to_100(self) -> None:
        assert _parse_limit_param({}) == 100

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_valid_value(self) -> None:
        assert _parse_limit_param(parse_qs("limit=25")) == 25

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    @pytest.mark.parametrize("raw", ["abc", "0", "-5", "2.5", ""])
    def test_invalid_falls_back_to_default(self, raw: str) -> None:
        params = parse_qs(f"limit={raw}", keep_blank_values=True)

        assert _parse_limit_param(params) == 100


class TestParseMinutesParam:
    """Tests for _parse_minutes_param()."""

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_missing_defaults_to_60(self) -> None:
        assert _parse_minutes_param({}) == 60.0

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_fractional_minutes(self) -> None:
        assert _parse_minutes_param(parse_qs("minutes=1.5")) == 1.5

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    @pytest.mark.parametrize("raw", ["soon", "-1", "nan", "inf"])
    def test_invalid_falls_back_to_default(self, raw: str) -> None:
        assert _parse_minutes_param(parse_qs(f"minutes={raw}")) == 60.0


class TestParseKindsParam:
    """Tests for _parse_kinds_param()."""

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_missing_means_all(self) -> None:
        assert _parse_kinds_param({}) is None

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_repeated_parameter(self) -> None:
        params = parse_qs("type=api_request&type=api_error")

        assert _parse_kinds_param(params) == [EventKind.API_REQUEST, EventKind.API_ERROR]

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_comma_separated_with_duplicates(self) -> None:
        params = parse_qs("type=tool_result,%20tool_decision,tool_result")

        assert _parse_kinds_param(params) == [
            EventKind.TOOL_RESULT,
            EventKind.TOOL_DECISION,
        ]

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_unknown_kinds_are_ignored(self) -> None:
        params = parse_qs("type=bogus,user_prompt")

        assert _parse_kinds_param(params) == [EventKind.USER_PROMPT]

    @pytest.mark.asgi
    @pytest.mark.tier(0)
    def test_only_unknown_kinds_means_all(self) -> None:
        assert _parse_kinds_param(parse_qs("type=bogus")) is None
