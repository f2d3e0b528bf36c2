"""Pseudonym tables for the club stats question engine.

Each table maps a canonical key to the surface phrasings that refer to it.
The extractor matches variants longest-first across a whole table, so the
order of variants inside a list does not matter for correctness.

Tables can be overridden at process start from a JSON file shaped as
``{"stat_types": {"Goals": ["goals", ...]}, ...}``; see ``load_pseudonym_tables``.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

PseudonymTable = Dict[str, List[str]]


# Entities. First-person references are detected separately.
ENTITY_PSEUDONYMS: PseudonymTable = {
    # Teams
    "1s": ["1s", "1st", "first team", "firsts", "1st team", "1st xi", "first xi"],
    "2s": ["2s", "2nd", "second team", "seconds", "2nd team", "2nd xi", "second xi"],
    "3s": ["3s", "3rd", "third team", "thirds", "3rd team", "3rd xi", "third xi"],
    "4s": ["4s", "4th", "fourth team", "fourths", "4th team", "4th xi", "fourth xi"],
    "5s": ["5s", "5th", "fifth team", "fifths", "5th team", "5th xi", "fifth xi"],
    "6s": ["6s", "6th", "sixth team", "sixths", "6th team", "6th xi", "sixth xi"],
    "7s": ["7s", "7th", "seventh team", "sevenths", "7th team", "7th xi", "seventh xi"],
    "8s": ["8s", "8th", "eighth team", "eighths", "8th team", "8th xi", "eighth xi"],
    # Leagues
    "Premier": ["premier", "premier league", "prem"],
    "Intermediate South": ["intermediate south", "intermediate"],
    "League One": ["league one", "league 1", "l1"],
    "League Two": ["league two", "league 2", "l2"],
    "Conference": ["conference", "conf"],
    "National League": ["national league", "national"],
}

TEAM_KEYS = ("1s", "2s", "3s", "4s", "5s", "6s", "7s", "8s")

FIRST_PERSON_PSEUDONYMS: List[str] = ["i", "i've", "me", "my", "myself"]

STAT_TYPE_PSEUDONYMS: PseudonymTable = {
    "Own Goals": ["own goals scored", "own goal scored", "own goals", "own goal", "og"],
    "Goals Conceded": ["goals conceded", "conceded goals", "goals against", "conceded"],
    "Goals": ["goals", "goal", "scoring", "prolific", "strikes", "finishes", "netted"],
    "Open Play Goals": [
        "open play goals", "open play goal", "goals from open play", "goals in open play",
        "goals scored from open play", "goals scored in open play", "scored from open play",
        "scored in open play", "non-penalty goals", "non penalty goals",
    ],
    "Assists": ["assists made", "assists provided", "assists", "assist", "assisting", "assisted"],
    "Apps": ["apps", "appearances", "appearance", "games played", "matches played"],
    "Minutes": ["minutes of football", "minutes played", "playing time", "time played", "minutes", "minute", "mins"],
    "Yellow Cards": ["yellow cards", "yellow card", "yellows", "bookings", "cautions"],
    "Red Cards": ["red cards", "red card", "reds", "dismissals", "sendings off"],
    "Saves": ["goalkeeper saves", "saves made", "saves", "save"],
    "Clean Sheets": ["clean sheet kept", "clean sheets", "clean sheet", "shutouts"],
    "Penalties Scored": [
        "penalties have scored", "penalties has scored", "penalties scored", "penalty scored",
        "penalty goals", "pen scored",
    ],
    "Penalties Missed": [
        "penalties have missed", "penalties has missed", "penalties missed", "penalty missed",
        "missed penalties", "pen missed",
    ],
    "Penalties Conceded": [
        "penalties conceded", "penalty conceded", "pen conceded", "conceded penalties",
        "penalties has conceded", "penalties have conceded",
    ],
    "Penalties Saved": [
        "penalties have saved", "penalties has saved", "penalties saved", "penalty saved",
        "saved penalties", "pen saved",
    ],
    "Goal Involvements": ["goal involvements", "goal involvement", "goals and assists", "contributions"],
    "Man of the Match": ["man of the match", "player of the match", "mom", "moms"],
    "Double Game Weeks": ["double game weeks", "double game week", "double games", "dgw", "double weeks"],
    "Team of the Week": ["team of the week", "totw", "weekly selection", "weekly team"],
    "Season Team of the Week": ["season team of the week", "season totw", "seasonal selection"],
    "Player of the Month": ["player of the month", "potm", "monthly award"],
    "Captain Awards": ["captain awards", "captain honors", "captaincy"],
    "Co Players": ["co players", "teammates", "played with", "team mates"],
    "Opponents": ["opponents", "played against", "faced"],
    "Fantasy Points": ["fantasy points", "fantasy score", "fantasy point", "points", "ftp"],
    "Goals Per Appearance": [
        "goals on average does", "goals on average has", "goals per appearance", "goals per app",
        "goals per game", "goals per match", "goals on average", "average goals",
    ],
    "Conceded Per Appearance": [
        "conceded on average does", "conceded per appearance", "conceded per app",
        "conceded per game", "conceded per match", "conceded on average", "average conceded",
    ],
    "Minutes Per Goal": [
        "minutes does it take on average", "minutes does it take", "minutes per goal",
        "mins per goal", "time per goal",
    ],
    "Minutes Per Clean Sheet": ["minutes per clean sheet", "mins per clean sheet"],
    "Fantasy Points Per Appearance": ["fantasy points per appearance", "fantasy points per game", "points per game"],
    "Score": ["goals scored", "score", "scores"],
    "Distance": ["distance travelled", "distance traveled", "miles travelled", "distance", "miles"],
    "Penalty Record": ["penalty conversion rate", "penalty record", "spot kick record", "pen conversion"],
    "Home": ["home games", "home matches", "at home"],
    "Away": ["away games", "away matches", "away from home", "on the road"],
    "Most Prolific Season": ["most prolific season", "best season", "top season", "highest scoring season"],
    "Most Common Position": ["most common position", "usual position", "main position", "position played most"],
    "Team Analysis": ["most appearances for", "most goals for", "teams played for", "played for"],
    "Season Analysis": ["seasons played in", "seasons played", "years played"],
    "Hat Tricks": ["hat-tricks", "hat-trick", "hat tricks", "hat trick", "hattricks", "hattrick"],
    "Record": [
        "record", "results", "win rate", "win percentage", "winning percentage", "win ratio",
        "wins", "win", "unbeaten run", "winning run", "losing run", "unbeaten streak",
        "winning streak", "losing streak",
    ],
}

STAT_INDICATOR_PSEUDONYMS: PseudonymTable = {
    "highest": ["highest", "most", "maximum", "top", "best", "greatest", "peak"],
    "lowest": ["lowest", "least", "minimum", "bottom", "worst", "smallest", "fewest"],
    "longest": ["longest", "biggest"],
    "shortest": ["shortest", "briefest"],
    "average": ["average", "mean", "typical"],
}

QUESTION_TYPE_PSEUDONYMS: PseudonymTable = {
    "how": ["how", "how do", "how does", "how did", "how can", "how will"],
    "how_many": ["how many", "how much", "how often", "how frequently"],
    "where": ["where", "where do", "where does"],
    "where_did": ["where did", "where have", "where has"],
    "what": ["what", "what do", "what does", "what did", "what have", "what has"],
    "whats": ["what's", "what is", "what are", "what was", "what were"],
    "who": ["who", "who do", "who does"],
    "who_did": ["who did", "who have", "who has", "who made"],
    "which": ["which", "which do", "which does", "which did", "which have", "which has"],
}

NEGATIVE_CLAUSE_PSEUDONYMS: PseudonymTable = {
    "not": ["not", "never", "none", "nobody", "nothing"],
    "excluding": ["excluding", "except", "apart from", "other than", "besides"],
    "without": ["without", "lacking", "missing", "devoid of"],
}

LOCATION_PSEUDONYMS: PseudonymTable = {
    "home": ["home", "at home", "home games", "home matches"],
    "away": ["away", "away from home", "on the road", "away ground", "their ground", "away games", "away matches"],
    "Pixham": ["pixham", "home ground", "our ground"],
}

# Keys double as span types, so none may reuse a structured type such as "season".
TIME_FRAME_PSEUDONYMS: PseudonymTable = {
    "week": ["week", "weekly", "a week"],
    "month": ["month", "monthly", "a month"],
    "game": ["game", "match", "a game", "a match"],
    "weekend": ["weekend", "a weekend", "weekends"],
    "season_reference": ["season", "yearly", "annual", "a season"],
    "consecutive": ["consecutive", "in a row", "straight", "running"],
    "first_week": ["first week", "opening week", "week one"],
    "second_week": ["second week", "week two"],
}

# Capitalized words that are never player or opposition names.
STOP_WORDS = frozenset([
    "how", "what", "where", "when", "why", "which", "who", "the", "and", "or", "but",
    "for", "with", "from", "to", "in", "on", "at", "by", "of", "a", "an", "is", "are",
    "was", "were", "be", "been", "being", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "may", "might", "must", "can", "shall",
    "goals", "assists", "appearances", "minutes", "cards", "saves", "clean", "sheets",
    "penalties", "fantasy", "points", "distance", "miles", "team", "teams", "season",
    "seasons", "week", "month", "year", "game", "games", "match", "matches", "league",
    "premier", "championship", "conference", "national", "division", "tier", "level",
    "home", "away", "playing", "whilst", "between", "got", "football", "soccer",
    "sport", "sports", "since", "before", "after", "during", "until", "total", "all",
    "my", "me", "i've", "this", "that", "last", "there", "their", "our", "xi", "cup",
    "friendly", "friendlies", "dorkinians", "pixham", "many", "much", "tell", "show",
    "give", "list", "please", "january", "february", "march", "april", "june", "july",
    "august", "september", "october", "november", "december",
])

# Tokens that turn a following proper noun into an opposition name.
OPPOSITION_PREFIXES = frozenset(["against", "vs", "v", "versus", "playing", "facing"])

# Surface forms of team ordinals used by the team mapping helpers.
TEAM_ORDINAL_WORDS = {
    "first": "1s", "second": "2s", "third": "3s", "fourth": "4s",
    "fifth": "5s", "sixth": "6s", "seventh": "7s", "eighth": "8s",
}


def load_pseudonym_tables(path: Optional[Path] = None) -> Dict[str, PseudonymTable]:
    """Return every pseudonym table keyed by concept class.

    A JSON file may replace individual tables. Malformed files or tables are
    ignored with a warning and the defaults are used.
    """
    tables: Dict[str, PseudonymTable] = {
        "entities": ENTITY_PSEUDONYMS,
        "stat_types": STAT_TYPE_PSEUDONYMS,
        "stat_indicators": STAT_INDICATOR_PSEUDONYMS,
        "question_types": QUESTION_TYPE_PSEUDONYMS,
        "negative_clauses": NEGATIVE_CLAUSE_PSEUDONYMS,
        "locations": LOCATION_PSEUDONYMS,
        "time_frames": TIME_FRAME_PSEUDONYMS,
    }
    if path is None:
        return tables

    try:
        if not path.exists():
            logger.info(f"Pseudonym file not found: {path}, using defaults")
            return tables
        logger.info(f"Loading pseudonym overrides: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load pseudonym file {path}: {e}, using defaults")
        return tables

    merged = dict(tables)
    for concept, table in data.items():
        if concept not in merged or not isinstance(table, dict):
            logger.warning(f"Ignoring unknown pseudonym table '{concept}'")
            continue
        normalized: PseudonymTable = {}
        for canonical, variants in table.items():
            variant_list = [v for v in variants if isinstance(v, str) and v.strip()]
            if isinstance(canonical, str) and variant_list:
                normalized[canonical] = variant_list
        if normalized:
            merged[concept] = normalized
    return merged
