"""Tests for shared query parameter parsing."""

import pytest

from dmexporter.adapters.frameworks.query_params import (
    _parse_level_param,
    _parse_since_param,
)

pytestmark = [pytest.mark.asgi, pytest.mark.tier(1)]


class TestParseSinceParam:
    """Tests for _parse_since_param."""

    def test_missing_defaults_to_zero(self) -> None:
        assert _parse_since_param({}) == 0.0

    def test_valid_value(self) -> None:
        assert _parse_since_param({"since": ["12.5"]}) == 12.5

    @pytest.mark.parametrize("raw", ["abc", "-1", "nan", "inf", "-inf"])
    def test_invalid_values_default_to_zero(self, raw: str) -> None:
        assert _parse_since_param({"since": [raw]}) == 0.0


class TestParseLevelParam:
    """Tests for _parse_level_param."""

    def test_missing_is_none(self) -> None:
        assert _parse_level_param({}) is None

    def test_level_is_uppercased(self) -> None:
        assert _parse_level_param({"level": ["error"]}) == "ERROR"

    def test_unknown_level_is_none(self) -> None:
        assert _parse_level_param({"level": ["loud"]}) is None
