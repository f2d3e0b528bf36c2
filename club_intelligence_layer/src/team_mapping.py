"""Team name mapping between question surface forms and graph values."""

import re
from typing import Optional

from ..config.pseudonyms import TEAM_ORDINAL_WORDS

_ORDINAL_SUFFIX = {1: "st", 2: "nd", 3: "rd"}
_TEAM_TOKEN = re.compile(r"^(\d)(?:s|st|nd|rd|th)?(?:\s+(?:team|teams|xi))?$", re.IGNORECASE)
_XI_NAME = re.compile(r"^(\d)(?:st|nd|rd|th)\s+xi$", re.IGNORECASE)


def ordinal(number: int) -> str:
    return f"{number}{_ORDINAL_SUFFIX.get(number, 'th')}"


def team_number(text: str) -> Optional[int]:
    """Return 1-8 for '2s', '2nd', 'second team', '2nd XI'; else None."""
    if not text:
        return None
    cleaned = text.strip().lower()
    word = cleaned.split()[0] if cleaned else ""
    if word in TEAM_ORDINAL_WORDS:
        return int(TEAM_ORDINAL_WORDS[word][0])
    m = _TEAM_TOKEN.match(cleaned) or _XI_NAME.match(cleaned)
    if m:
        number = int(m.group(1))
        if 1 <= number <= 8:
            return number
    return None


def map_team_name(text: str) -> Optional[str]:
    """Map any team reference to the stored team name ('2s' -> '2nd XI')."""
    number = team_number(text)
    return f"{ordinal(number)} XI" if number else None
