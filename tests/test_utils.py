# tests/test_utils.py

from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from apps.core.utils import to_date, to_decimal, to_int


def test_to_date_accepts_iso_strings():
    assert to_date('2025-02-28') == date(2025, 2, 28)
    assert to_date('') is None


@pytest.mark.parametrize('value', ['2025-02-30', '2025-13-01', '2025-04-31', 'tomorrow'])
def test_to_date_rejects_impossible_dates(value):
    with pytest.raises(ValidationError) as excinfo:
        to_date(value, 'due_date')
    assert 'due_date' in excinfo.value.message_dict


def test_to_decimal_parses_numbers():
    assert to_decimal('12.50') == Decimal('12.50')
    assert to_decimal(None) == Decimal('0')


@pytest.mark.parametrize('value', ['NaN', 'Infinity', '-Infinity', 'sNaN', 'ten'])
def test_to_decimal_rejects_non_finite_values(value):
    with pytest.raises(ValidationError) as excinfo:
        to_decimal(value, 'total_allocated')
    assert 'total_allocated' in excinfo.value.message_dict


def test_to_int_rejects_text():
    with pytest.raises(ValidationError):
        to_int('abc', 'milestone')
