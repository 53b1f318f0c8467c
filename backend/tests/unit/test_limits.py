"""
Unit tests for quota limit values.
"""

import pickle

import pytest

from core.limits import UNLIMITED, Finite, Unlimited, coerce_limit, is_unlimited, limit_to_json


class TestFinite:
    """Tests for the Finite limit."""

    def test_holds_value(self):
        assert Finite(10).value == 10
        assert str(Finite(10)) == "10"

    def test_zero_is_allowed(self):
        assert Finite(0).value == 0

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            Finite(-1)

    @pytest.mark.parametrize("value", ["10", 1.5, True, None])
    def test_non_int_rejected(self, value):
        with pytest.raises(TypeError):
            Finite(value)

    def test_equality(self):
        assert Finite(5) == Finite(5)
        assert Finite(5) != Finite(6)


class TestUnlimited:
    """Tests for the unlimited singleton."""

    def test_singleton(self):
        assert Unlimited() is UNLIMITED
        assert pickle.loads(pickle.dumps(UNLIMITED)) is UNLIMITED

    def test_is_not_a_number(self):
        with pytest.raises(TypeError):
            UNLIMITED < 5  # noqa: B015
        with pytest.raises(TypeError):
            UNLIMITED + 1  # noqa: B018

    def test_is_unlimited(self):
        assert is_unlimited(UNLIMITED)
        assert not is_unlimited(Finite(0))


class TestCoerceLimit:
    """Tests for coerce_limit."""

    def test_passes_limits_through(self):
        assert coerce_limit(UNLIMITED) is UNLIMITED
        assert coerce_limit(Finite(3)) == Finite(3)

    def test_wraps_ints(self):
        assert coerce_limit(7) == Finite(7)

    def test_legacy_sentinel_rejected(self):
        with pytest.raises(ValueError):
            coerce_limit(-1)

    def test_other_types_rejected(self):
        with pytest.raises(TypeError):
            coerce_limit("unlimited")


def test_limit_to_json():
    assert limit_to_json(Finite(25)) == 25
    assert limit_to_json(UNLIMITED) is None
