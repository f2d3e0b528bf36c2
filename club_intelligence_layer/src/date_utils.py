"""Date and season helpers.

Every parser here returns ``None`` for input it cannot understand; callers
drop the corresponding filter instead of failing the question.
"""

import logging
import re
from datetime import datetime
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

_NUMERIC_DATE = re.compile(r"^\s*(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})\s*$")
_TEXT_DATE = re.compile(r"^\s*(\d{1,2})\s+([a-z]+)\s+(\d{2,4})\s*$", re.IGNORECASE)
_ISO_DATE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})\s*$")
_SEASON = re.compile(r"^\s*(20\d{2})\s*[/-]?\s*(20\d{2}|\d{2})\s*$")
_YEAR = re.compile(r"^\s*(\d{4})\s*$")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def _expand_year(year: str) -> int:
    value = int(year)
    return 2000 + value if len(year) == 2 else value


def _iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return datetime(year, month, day).strftime("%Y-%m-%d")
    except ValueError:
        return None


def convert_date_format(text: str) -> Optional[str]:
    """Convert DD/MM/YY(YY), DD-MM-YYYY or '5 March 2021' to YYYY-MM-DD."""
    if not text:
        return None
    m = _ISO_DATE.match(text)
    if m:
        return _iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    m = _NUMERIC_DATE.match(text)
    if m:
        day, month, year = m.groups()
        return _iso(_expand_year(year), int(month), int(day))
    m = _TEXT_DATE.match(text)
    if m:
        day, month_name, year = m.groups()
        month = _MONTHS.get(month_name[:3].lower())
        if month:
            return _iso(_expand_year(year), month, int(day))
    logger.debug(f"Unparseable date: '{text}'")
    return None


def format_date(iso_date: str) -> str:
    """'2021-03-05' -> '5 March 2021'; unknown input is returned unchanged."""
    try:
        parsed = datetime.strptime(str(iso_date)[:10], "%Y-%m-%d")
    except ValueError:
        return str(iso_date)
    return f"{parsed.day} {parsed.strftime('%B %Y')}"


def normalize_season(text: str) -> Optional[str]:
    """Normalize '2017-18', '201718', '2017/2018' or '2017 / 18' to '2017/18'."""
    if not text:
        return None
    m = _SEASON.match(text)
    if not m:
        return None
    start = int(m.group(1))
    end = m.group(2)
    end_short = int(end[-2:])
    if end_short != (start + 1) % 100:
        return None
    return f"{start}/{end_short:02d}"


def season_start_year(season: str) -> Optional[int]:
    normalized = normalize_season(season)
    return int(normalized[:4]) if normalized else None


def season_start_date(season: str) -> Optional[str]:
    """Seasons start on 1 September of their first year."""
    year = season_start_year(season)
    return f"{year}-09-01" if year else None


def previous_season(season: str) -> Optional[str]:
    year = season_start_year(season)
    if not year:
        return None
    return f"{year - 1}/{year % 100:02d}"


def since_year_to_date(year: str) -> Optional[str]:
    """'since 2020' counts from the first day of the following year."""
    m = _YEAR.match(str(year))
    if not m:
        return None
    return f"{int(m.group(1)) + 1}-01-01"


def year_start(year: str) -> Optional[str]:
    m = _YEAR.match(str(year))
    return f"{m.group(1)}-01-01" if m else None


def year_end(year: str) -> Optional[str]:
    m = _YEAR.match(str(year))
    return f"{m.group(1)}-12-31" if m else None


def parse_range(value: str) -> Optional[Tuple[str, str]]:
    """Parse 'A to B' where A and B are years or dates."""
    if not value or " to " not in value:
        return None
    start_text, end_text = [part.strip() for part in value.split(" to ", 1)]
    if _YEAR.match(start_text) and _YEAR.match(end_text):
        return year_start(start_text), year_end(end_text)
    start = convert_date_format(start_text)
    end = convert_date_format(end_text)
    if start and end:
        return start, end
    logger.debug(f"Unparseable range: '{value}'")
    return None
