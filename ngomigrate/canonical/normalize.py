"""Value-level normalizers for spreadsheet fields.

Every function here is total: missing or malformed input yields a defined
default and never raises to the caller.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

from ngomigrate.constants import (
    COVERAGE_KEYWORDS,
    DEFAULT_STAFF_COUNT,
    DESCRIPTION_MAX_LENGTH,
    ENTITY_TYPE_KEYWORDS,
    EXCEL_SERIAL_MIN,
    SERVICE_CATEGORY_MAPPING,
    YEAR_MAX,
    YEAR_MIN,
)
from ngomigrate.models import EntityType, RegistrationCountry, ServiceCategory

logger = logging.getLogger(__name__)

_EXCEL_EPOCH = date(1900, 1, 1)
_CHINESE_DATE_PATTERN = re.compile(
    r"(?P<year>\d{4})年(?:\s*(?P<month>\d{1,2})月(?:\s*(?P<day>\d{1,2})日)?)?"
)
_DIGITS_PATTERN = re.compile(r"^\d+$")
_INTEGER_PATTERN = re.compile(r"\d+")
_RANGE_PATTERN = re.compile(r"(\d+)\s*[-－~～—–]\s*(\d+)")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_PROVINCE_SUFFIX = re.compile(r"(市|省)$")
_CITY_SUFFIX = re.compile(r"市$")
_DISTRICT_SUFFIX = re.compile(r"(区|县)$")


def is_blank(value: Any) -> bool:
    """True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def to_text(value: Any) -> str:
    """Render a cell value as stripped text ('' when blank).

    Integral floats (pandas widens integer columns that contain gaps) are
    rendered without the trailing ``.0``.
    """
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def excel_serial_to_date(serial: int) -> date:
    """Convert an Excel 1900-epoch day serial to a calendar date.

    Excel counts 1900-01-01 as day 1 and also counts the nonexistent
    1900-02-29, hence the offset of two.
    """
    return _EXCEL_EPOCH + timedelta(days=serial - 2)


def parse_date(value: Any) -> str | None:
    """Parse an establishment date into ``YYYY-MM-DD``.

    Accepted inputs, in order of precedence:
      * date/datetime objects (openpyxl returns these for date cells)
      * bare years 1900-2100, numeric or string -> Jan 1 of that year
      * integers > 25000 -> Excel day serial
      * ``YYYY年MM月DD日``, ``YYYY年MM月``, ``YYYY年``
      * anything pandas can parse

    Returns None for blank or unparseable input.
    """
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = to_text(value)
    if not text:
        return None

    if _DIGITS_PATTERN.match(text):
        number = int(text)
        if YEAR_MIN <= number <= YEAR_MAX:
            return f"{number:04d}-01-01"
        if number > EXCEL_SERIAL_MIN:
            try:
                return excel_serial_to_date(number).isoformat()
            except OverflowError:
                logger.warning("Excel serial out of range: %s", text)
                return None
        return None

    match = _CHINESE_DATE_PATTERN.search(text)
    if match:
        year = int(match.group("year"))
        month = int(match.group("month") or 1)
        day = int(match.group("day") or 1)
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            logger.warning("Invalid Chinese date: %s", text)
            return None

    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        parsed = pd.NaT
    if pd.isna(parsed):
        logger.debug("Unparseable date: %s", text)
        return None
    return parsed.date().isoformat()


def parse_staff_count(value: Any) -> int:
    """Parse a full-time staff count.

    ``"15-25"`` -> 20 (floor of the mean), ``"约30人"`` -> 30, blank -> 0.
    """
    if is_blank(value):
        return DEFAULT_STAFF_COUNT
    text = to_text(value)

    range_match = _RANGE_PATTERN.search(text)
    if range_match:
        low, high = int(range_match.group(1)), int(range_match.group(2))
        return (low + high) // 2

    match = _INTEGER_PATTERN.search(text)
    if match:
        return int(match.group(0))
    return DEFAULT_STAFF_COUNT


def clean_description(value: Any) -> str:
    """Collapse whitespace runs, trim and cap at 2000 characters."""
    if is_blank(value):
        return ""
    collapsed = _WHITESPACE_PATTERN.sub(" ", str(value)).strip()
    return collapsed[:DESCRIPTION_MAX_LENGTH]


def _segment(address: Any, index: int) -> str:
    text = to_text(address)
    if not text:
        return ""
    parts = text.split("-")
    if index >= len(parts):
        return ""
    return parts[index].strip()


def extract_province(address: Any) -> str:
    """``甘肃省-兰州市-`` -> ``甘肃``."""
    return _PROVINCE_SUFFIX.sub("", _segment(address, 0))


def extract_city(address: Any) -> str:
    return _CITY_SUFFIX.sub("", _segment(address, 1))


def extract_district(address: Any) -> str:
    return _DISTRICT_SUFFIX.sub("", _segment(address, 2))


def map_entity_type(value: Any) -> EntityType:
    """Map a Chinese legal-form label to an EntityType; first keyword wins."""
    text = to_text(value)
    if not text:
        return EntityType.OTHER
    for keyword, entity_type in ENTITY_TYPE_KEYWORDS:
        if keyword in text:
            return EntityType(entity_type)
    return EntityType.OTHER


def map_registration_country(value: Any) -> RegistrationCountry:
    if "国际" in to_text(value):
        return RegistrationCountry.INTERNATIONAL
    return RegistrationCountry.CHINA


def extract_coverage(description: Any) -> str:
    """Return the first region keyword mentioned in the description."""
    text = to_text(description)
    if not text:
        return ""
    for keyword in COVERAGE_KEYWORDS:
        if keyword in text:
            return keyword
    return ""


def map_service_category(label: Any) -> ServiceCategory:
    """Exact lookup of a Chinese service-category label."""
    category = SERVICE_CATEGORY_MAPPING.get(to_text(label), ServiceCategory.OTHER.value)
    return ServiceCategory(category)
