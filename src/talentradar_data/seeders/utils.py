"""
Shared field-level parsing utilities for API-Football payloads.

These helpers convert single JSON values into typed record fields:
- Units ("184 cm", "72 kg")
- ISO dates and fixture timestamps
- Ratings and loosely typed integers
- Country codes with a fixed storage width

Every helper returns None (or the given default) rather than raising, so one
malformed field never discards the surrounding record.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

logger = logging.getLogger(__name__)

COUNTRY_CODE_MAX_LENGTH = 10
RATING_MIN = Decimal("0")
RATING_MAX = Decimal("10")


class DataParsers:
    """Field parsers shared by the response parsers and the reconciler."""

    @staticmethod
    def parse_unit_value(value: Any, unit: str) -> Optional[int]:
        """Parse a measurement carrying a unit suffix.

        Only strings containing ``unit`` are considered, so "184 cm" yields
        184 while "184" or "unknown" yield None.

        Args:
            value: Raw value from the API (usually a string)
            unit: Expected unit suffix, e.g. "cm" or "kg"

        Returns:
            Integer magnitude, or None if the value is absent or unparsable
        """
        if not isinstance(value, str) or unit not in value.lower():
            return None

        number = value.lower().replace(unit, "").strip()
        try:
            return int(number)
        except ValueError:
            logger.warning("Could not parse %s value '%s'", unit, value)
            return None

    @staticmethod
    def parse_height_cm(value: Any) -> Optional[int]:
        return DataParsers.parse_unit_value(value, "cm")

    @staticmethod
    def parse_weight_kg(value: Any) -> Optional[int]:
        return DataParsers.parse_unit_value(value, "kg")

    @staticmethod
    def parse_date(value: Any) -> Optional[date]:
        """Parse a ``YYYY-MM-DD`` date.

        Timestamps such as "2021-04-07T19:00:00+00:00" are cut to their first
        ten characters first.
        """
        if not value or not isinstance(value, str):
            return None

        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            logger.warning("Could not parse date '%s'", value)
            return None

    @staticmethod
    def parse_rating(value: Any) -> Optional[Decimal]:
        """Parse a match rating such as "7.266667" into a 2-place Decimal.

        Values outside 0-10 and non-numeric strings are dropped silently.
        """
        if value is None or value == "" or value == "null":
            return None

        try:
            rating = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return None

        if not rating.is_finite() or rating < RATING_MIN or rating > RATING_MAX:
            return None
        return rating

    @staticmethod
    def truncate_country_code(code: Any, country_name: Optional[str] = None) -> Optional[str]:
        """Fit a country code into its fixed-width column, warning when cut."""
        if code is None:
            return None

        code = str(code)
        if len(code) > COUNTRY_CODE_MAX_LENGTH:
            code = code[:COUNTRY_CODE_MAX_LENGTH]
            logger.warning("Country code truncated for %s: %s", country_name, code)
        return code

    @staticmethod
    def safe_int(value: Any, default: Optional[int] = None) -> Optional[int]:
        """Safely convert value to int, with fallback.

        Handles None, numeric strings and bools reported as numbers.
        """
        if value is None:
            return default

        if isinstance(value, bool):
            return int(value)

        try:
            if isinstance(value, (int, float)):
                return int(value)

            if isinstance(value, str):
                cleaned = value.replace(",", "").replace("%", "").strip()
                return int(float(cleaned))
        except (ValueError, OverflowError):
            return default

        return default

    @staticmethod
    def safe_bool(value: Any) -> Optional[bool]:
        if value is None:
            return None
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)

    @staticmethod
    def safe_str(value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None
