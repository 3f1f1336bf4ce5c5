# tests/modules/finance/test_normalizers.py
from datetime import date, datetime, timezone

import pytest

from granaapp.modules.finance.models import EXPENSE_KEYWORDS, EXPENSE_CATEGORIES, INVESTMENT_KEYWORDS, INVESTMENT_TYPES
from granaapp.modules.finance.normalizers import (
    parse_amount, classify, fold_text, parse_date, parse_datetime, normalize_percentage, clamp_limit,
)


@pytest.mark.parametrize("raw, expected", [
    (25, 25.0),
    ("25", 25.0),
    ("R$ 25", 25.0),
    ("1.234,56", 1234.56),
    ("25,50", 25.5),
    ("25.5", 25.5),
    ("1.000.000", 1000000.0),
])
def test_parse_amount_accepts_brazilian_and_plain_formats(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "abc", True, float("inf")])
def test_parse_amount_returns_none_for_garbage(raw):
    assert parse_amount(raw) is None


def test_fold_text_removes_accents_and_case():
    assert fold_text("Almoço na PADARIA") == "almoco na padaria"


def test_classify_uses_description_keywords_first():
    category = classify("other", EXPENSE_KEYWORDS, EXPENSE_CATEGORIES, description="almoço no restaurante")
    assert category == "food"


def test_classify_matches_portuguese_category_names():
    assert classify("Alimentação", EXPENSE_KEYWORDS, EXPENSE_CATEGORIES) == "food"
    assert classify("Transporte", EXPENSE_KEYWORDS, EXPENSE_CATEGORIES) == "transport"


def test_classify_accepts_canonical_value():
    assert classify("health", EXPENSE_KEYWORDS, EXPENSE_CATEGORIES) == "health"


def test_classify_falls_back_to_other():
    assert classify("xyzzy", EXPENSE_KEYWORDS, EXPENSE_CATEGORIES) == "other"
    assert classify(None, EXPENSE_KEYWORDS, EXPENSE_CATEGORIES) == "other"


def test_classify_keyword_must_start_a_word():
    # "aplicação" contém "acao" no meio da palavra, não é ação
    assert classify("aplicação", INVESTMENT_KEYWORDS, INVESTMENT_TYPES) == "other"
    assert classify("ações da Petrobras", INVESTMENT_KEYWORDS, INVESTMENT_TYPES) == "equities"


def test_parse_date_formats():
    today = date(2024, 3, 15)
    assert parse_date(None, today=today) == today
    assert parse_date("", today=today) == today
    assert parse_date("2024-03-01") == date(2024, 3, 1)
    assert parse_date("05/02/2024") == date(2024, 2, 5)
    assert parse_date("2024-03-01T10:00:00Z") == date(2024, 3, 1)


def test_parse_date_rejects_invalid():
    with pytest.raises(ValueError, match="Data inválida"):
        parse_date("31/02/2024")


def test_parse_datetime_combines_clock_with_today():
    now = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
    assert parse_datetime("20:30", now=now) == datetime(2024, 3, 15, 20, 30, tzinfo=timezone.utc)
    assert parse_datetime(None, now=now) == now
    with pytest.raises(ValueError, match="Horário inválido"):
        parse_datetime("25:99", now=now)


def test_normalize_percentage():
    assert normalize_percentage(None, 1.0) == 1.0
    assert normalize_percentage(0.5, 1.0) == 0.5
    assert normalize_percentage("75", 1.0) == 0.75
    assert normalize_percentage("abc", 1.0) is None


@pytest.mark.parametrize("raw, expected", [
    (None, 20), (100, 50), (0, 1), (-3, 1), ("10", 10), ("x", 20),
    (float("inf"), 20), (float("-inf"), 20), (float("nan"), 20), ("1e999", 20),
])
def test_clamp_limit(raw, expected):
    assert clamp_limit(raw) == expected
