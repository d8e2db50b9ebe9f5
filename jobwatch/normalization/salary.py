"""Free-form salary text parsing.

Examples of accepted input::

    "$100,000 - $130,000"          -> 100000..130000 USD / year
    "Salary: £55k per year"        -> 55000..55000 GBP / year
    "€450 - €500 per day"          -> 117000..130000 EUR (period 450..500 / day)
    "$45/hr"                       -> 93600..93600 USD (period 45 / hour)

Anything without a number yields None. Parsing never raises.
"""

import re
from typing import List, Optional

from jobwatch.domain.models import PayUnit, SalaryRange
from jobwatch.utils.text import clean_text

HOURS_PER_YEAR = 2080
DAYS_PER_YEAR = 260

_LEADING_LABEL = re.compile(r"^(salary|pay|compensation|rate)\s*:\s*", re.IGNORECASE)
_TRAILING_PERIOD = re.compile(
    r"\s*\b(per\s+year|per\s+annum|annually|a\s+year|p\.a\.?|pa)\s*$", re.IGNORECASE
)
_NUMBER = re.compile(r"(\d[\d,]*(?:\.\d+)?)(\s*[kK]\b)?")
_HOURLY = re.compile(r"\b(hour|hourly|hr|hrs)\b|/\s*h(ou)?r", re.IGNORECASE)
_DAILY = re.compile(r"\b(day|daily|diem)\b|/\s*d(ay)?\b", re.IGNORECASE)

_CURRENCY_SYMBOLS = (("£", "GBP"), ("€", "EUR"), ("$", "USD"))
_CURRENCY_CODES = re.compile(r"\b(USD|GBP|EUR|CAD|AUD)\b", re.IGNORECASE)


def clean_salary_text(text: Optional[str]) -> str:
    """Drop leading labels ("Salary:") and trailing yearly qualifiers."""
    cleaned = clean_text(text)
    cleaned = _LEADING_LABEL.sub("", cleaned)
    return _TRAILING_PERIOD.sub("", cleaned).strip()


def _extract_amounts(text: str) -> List[float]:
    """Amounts in ``text``; a trailing ``k`` also scales bare amounts before it ("50-60k")."""
    parsed = []
    for digits, thousands in _NUMBER.findall(text):
        try:
            value = float(digits.replace(",", ""))
        except ValueError:
            continue
        if value > 0:
            parsed.append((value, bool(thousands)))

    if not parsed:
        return []
    range_in_thousands = parsed[-1][1]
    amounts = []
    for value, thousands in parsed:
        if thousands or (range_in_thousands and value < 1000):
            value *= 1000
        amounts.append(value)
    return amounts


def _detect_unit(text: str) -> PayUnit:
    if _HOURLY.search(text):
        return PayUnit.HOUR
    if _DAILY.search(text):
        return PayUnit.DAY
    return PayUnit.YEAR


def _detect_currency(text: str, default: str) -> str:
    code = _CURRENCY_CODES.search(text)
    if code:
        return code.group(1).upper()
    for symbol, currency in _CURRENCY_SYMBOLS:
        if symbol in text:
            return currency
    return default


def parse_salary(text: Optional[str], default_currency: str = "USD") -> Optional[SalaryRange]:
    """Parse salary text into an annualized, currency-tagged range.

    Two or more numbers give a min/max range, a single number gives a point
    value. Hourly figures are multiplied by 2080 and daily figures by 260.

    Args:
        text: Salary text as scraped
        default_currency: Currency used when the text names none

    Returns:
        SalaryRange, or None when no usable number is present
    """
    cleaned = clean_salary_text(text)
    if not cleaned:
        return None

    amounts = _extract_amounts(cleaned)
    if not amounts:
        return None

    period_min, period_max = min(amounts), max(amounts)
    unit = _detect_unit(cleaned)
    factor = {PayUnit.HOUR: HOURS_PER_YEAR, PayUnit.DAY: DAYS_PER_YEAR}.get(unit, 1)

    return SalaryRange(
        min=period_min * factor,
        max=period_max * factor,
        currency=_detect_currency(cleaned, default_currency),
        unit=unit,
        period_min=period_min,
        period_max=period_max,
    )
