"""Metric catalogue.

Maps canonical stat types to metric keys and describes, per metric, where the
value lives in the graph: a precomputed property on the ``Player`` summary
node, an aggregation over ``MatchDetail`` records, or a ratio of two
aggregations.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class MetricConfig:
    """Display configuration for a metric."""
    key: str
    display_name: str
    singular: str
    plural: str

    def label(self, value) -> str:
        try:
            return self.singular if float(value) == 1 else self.plural
        except (TypeError, ValueError):
            return self.plural


@dataclass(frozen=True)
class RatioMetric:
    """A derived metric computed as numerator / denominator in the query.

    ``scale`` is the rounding factor (10 for one decimal place, 100 for two).
    ``percentage`` multiplies the ratio by 100 before rounding.
    """
    numerator: str
    denominator: str
    scale: int = 10
    percentage: bool = False


# Canonical stat type -> metric key
STAT_TYPE_TO_METRIC: Dict[str, str] = {
    "Apps": "APP",
    "Minutes": "MIN",
    "Man of the Match": "MOM",
    "Goals": "G",
    "Score": "G",
    "Open Play Goals": "OPENPLAYGOALS",
    "Assists": "A",
    "Yellow Cards": "Y",
    "Red Cards": "R",
    "Saves": "SAVES",
    "Own Goals": "OG",
    "Goals Conceded": "C",
    "Clean Sheets": "CLS",
    "Penalties Scored": "PSC",
    "Penalties Missed": "PM",
    "Penalties Conceded": "PCO",
    "Penalties Saved": "PSV",
    "Fantasy Points": "FTP",
    "Goal Involvements": "GI",
    "Goals Per Appearance": "GPERAPP",
    "Conceded Per Appearance": "CPERAPP",
    "Minutes Per Goal": "MPERG",
    "Minutes Per Clean Sheet": "MPERCLS",
    "Fantasy Points Per Appearance": "FTPPERAPP",
    "Distance": "DIST",
    "Penalty Record": "PENALTY_CONVERSION_RATE",
    "Team of the Week": "TOTW",
    "Season Team of the Week": "SEASON_TOTW",
    "Player of the Month": "POTM",
    "Captain Awards": "CAPTAIN",
    "Co Players": "CO_PLAYERS",
    "Opponents": "OPPONENTS",
    "Double Game Weeks": "DGW",
    "Most Prolific Season": "MOST_PROLIFIC_SEASON",
    "Most Common Position": "MOST_COMMON_POSITION",
    "Team Analysis": "TEAM_ANALYSIS",
    "Season Analysis": "SEASON_ANALYSIS",
    "Hat Tricks": "HAT_TRICKS",
    "Home": "HOME",
    "Away": "AWAY",
    "Record": "RECORD",
}

# Award metrics; recognised but not answerable from the match graph.
UNSUPPORTED_METRICS = frozenset(["TOTW", "SEASON_TOTW", "POTM", "CAPTAIN"])

# Metrics that only describe a venue; dropped when a real metric is present.
LOCATION_METRICS = frozenset(["HOME", "AWAY"])


METRIC_CONFIGS: Dict[str, MetricConfig] = {
    cfg.key: cfg
    for cfg in [
        MetricConfig("APP", "appearances", "appearance", "appearances"),
        MetricConfig("MIN", "minutes", "minute played", "minutes played"),
        MetricConfig("MOM", "man of the match", "man of the match award", "man of the match awards"),
        MetricConfig("G", "goals", "goal", "goals"),
        MetricConfig("OPENPLAYGOALS", "open play goals", "open play goal", "open play goals"),
        MetricConfig("A", "assists", "assist", "assists"),
        MetricConfig("Y", "yellow cards", "yellow card", "yellow cards"),
        MetricConfig("R", "red cards", "red card", "red cards"),
        MetricConfig("SAVES", "saves", "save", "saves"),
        MetricConfig("OG", "own goals", "own goal", "own goals"),
        MetricConfig("C", "conceded goals", "goal conceded", "goals conceded"),
        MetricConfig("CLS", "clean sheets", "clean sheet", "clean sheets"),
        MetricConfig("PSC", "penalties scored", "penalty scored", "penalties scored"),
        MetricConfig("PM", "penalties missed", "penalty missed", "penalties missed"),
        MetricConfig("PCO", "penalties conceded", "penalty conceded", "penalties conceded"),
        MetricConfig("PSV", "penalties saved", "penalty saved", "penalties saved"),
        MetricConfig("FTP", "fantasy points", "fantasy point", "fantasy points"),
        MetricConfig("GI", "goal involvements", "goal involvement", "goal involvements"),
        MetricConfig("DIST", "distance travelled", "mile travelled", "miles travelled"),
        MetricConfig("HOME", "home games", "home game", "home games"),
        MetricConfig("AWAY", "away games", "away game", "away games"),
        MetricConfig("GPERAPP", "goals per appearance", "goal per appearance", "goals per appearance"),
        MetricConfig("CPERAPP", "goals conceded per appearance", "goal conceded per appearance", "goals conceded per appearance"),
        MetricConfig("MPERG", "minutes per goal", "minute per goal", "minutes per goal"),
        MetricConfig("MPERCLS", "minutes per clean sheet", "minute per clean sheet", "minutes per clean sheet"),
        MetricConfig("FTPPERAPP", "fantasy points per appearance", "fantasy point per appearance", "fantasy points per appearance"),
        MetricConfig("MINPERAPP", "minutes per appearance", "minute per appearance", "minutes per appearance"),
        MetricConfig("MOMPERAPP", "man of the match awards per appearance", "man of the match award per appearance", "man of the match awards per appearance"),
        MetricConfig("YPERAPP", "yellow cards per appearance", "yellow card per appearance", "yellow cards per appearance"),
        MetricConfig("RPERAPP", "red cards per appearance", "red card per appearance", "red cards per appearance"),
        MetricConfig("SAVESPERAPP", "saves per appearance", "save per appearance", "saves per appearance"),
        MetricConfig("OGPERAPP", "own goals per appearance", "own goal per appearance", "own goals per appearance"),
        MetricConfig("CLSPERAPP", "clean sheets per appearance", "clean sheet per appearance", "clean sheets per appearance"),
        MetricConfig("PSCPERAPP", "penalties scored per appearance", "penalty scored per appearance", "penalties scored per appearance"),
        MetricConfig("PMPERAPP", "penalties missed per appearance", "penalty missed per appearance", "penalties missed per appearance"),
        MetricConfig("PCOPERAPP", "penalties conceded per appearance", "penalty conceded per appearance", "penalties conceded per appearance"),
        MetricConfig("PSVPERAPP", "penalties saved per appearance", "penalty saved per appearance", "penalties saved per appearance"),
        MetricConfig("PENALTY_CONVERSION_RATE", "penalty conversion rate", "penalty conversion rate", "penalty conversion rate"),
        MetricConfig("HAT_TRICKS", "hat-tricks", "hat-trick", "hat-tricks"),
        MetricConfig("DGW", "double game week appearances", "double game week appearance", "double game week appearances"),
        MetricConfig("CO_PLAYERS", "games played together", "game played together", "games played together"),
        MetricConfig("OPPONENTS", "opponents", "opponent", "opponents"),
        MetricConfig("RECORD", "record", "result", "results"),
        MetricConfig("TOTW", "team of the week", "team of the week selection", "team of the week selections"),
        MetricConfig("POTM", "player of the month", "player of the month award", "player of the month awards"),
        MetricConfig("CAPTAIN", "captain awards", "captain award", "captain awards"),
    ]
}


def get_metric_config(key: str) -> MetricConfig:
    cfg = METRIC_CONFIGS.get(key)
    if cfg:
        return cfg
    lowered = key.lower()
    return MetricConfig(key, lowered, lowered, lowered)


# Metric -> property on the Player summary node.
PLAYER_SUMMARY_FIELDS: Dict[str, str] = {
    "APP": "appearances",
    "MIN": "minutes",
    "MOM": "mom",
    "G": "allGoalsScored",
    "OPENPLAYGOALS": "goals",
    "A": "assists",
    "Y": "yellowCards",
    "R": "redCards",
    "SAVES": "saves",
    "OG": "ownGoals",
    "C": "conceded",
    "CLS": "cleanSheets",
    "PSC": "penaltiesScored",
    "PM": "penaltiesMissed",
    "PCO": "penaltiesConceded",
    "PSV": "penaltiesSaved",
    "FTP": "fantasyPoints",
    "DIST": "distance",
    "MOST_PROLIFIC_SEASON": "mostProlificSeason",
}

# Metric -> per-match property on MatchDetail nodes.
MATCH_DETAIL_FIELDS: Dict[str, str] = {
    "G": "goals",
    "OPENPLAYGOALS": "goals",
    "A": "assists",
    "R": "redCards",
    "Y": "yellowCards",
    "MOM": "mom",
    "SAVES": "saves",
    "CLS": "cleanSheets",
    "OG": "ownGoals",
    "C": "conceded",
    "MIN": "minutes",
    "PSC": "penaltiesScored",
    "PM": "penaltiesMissed",
    "PCO": "penaltiesConceded",
    "PSV": "penaltiesSaved",
    "FTP": "fantasyPoints",
    "DIST": "distance",
}


def _sum(field: str) -> str:
    return f"sum(coalesce(md.{field}, 0))"


# Metric -> aggregation over matched MatchDetail rows (alias added by builders).
MATCH_DETAIL_AGGREGATES: Dict[str, str] = {
    "APP": "count(md)",
    "G": f"{_sum('goals')} + {_sum('penaltiesScored')}",
    "GI": f"{_sum('goals')} + {_sum('penaltiesScored')} + {_sum('assists')}",
    "HOME": "count(DISTINCT md)",
    "AWAY": "count(DISTINCT md)",
    **{
        key: _sum(field)
        for key, field in MATCH_DETAIL_FIELDS.items()
        if key != "G"
    },
}

# Metrics that cannot be read from the Player summary node.
METRIC_NEEDS_MATCH_DETAIL = frozenset([
    "GI", "HOME", "AWAY", "DIST", "HAT_TRICKS", "DGW",
    "MOST_PROLIFIC_SEASON", "MOST_COMMON_POSITION", "TEAM_ANALYSIS",
    "SEASON_ANALYSIS", "PENALTY_CONVERSION_RATE",
])

_APPS = "count(md)"
_GOALS = f"{_sum('goals')} + {_sum('penaltiesScored')}"

RATIO_METRICS: Dict[str, RatioMetric] = {
    "GPERAPP": RatioMetric(_GOALS, _APPS),
    "CPERAPP": RatioMetric(_sum("conceded"), _APPS),
    "MPERG": RatioMetric(_sum("minutes"), _GOALS, scale=1),
    "MPERCLS": RatioMetric(_sum("minutes"), _sum("cleanSheets"), scale=1),
    "FTPPERAPP": RatioMetric(_sum("fantasyPoints"), _APPS),
    "MINPERAPP": RatioMetric(_sum("minutes"), _APPS),
    "MOMPERAPP": RatioMetric(_sum("mom"), _APPS, scale=100),
    "YPERAPP": RatioMetric(_sum("yellowCards"), _APPS, scale=100),
    "RPERAPP": RatioMetric(_sum("redCards"), _APPS, scale=100),
    "SAVESPERAPP": RatioMetric(_sum("saves"), _APPS),
    "OGPERAPP": RatioMetric(_sum("ownGoals"), _APPS, scale=100),
    "CLSPERAPP": RatioMetric(_sum("cleanSheets"), _APPS, scale=100),
    "PSCPERAPP": RatioMetric(_sum("penaltiesScored"), _APPS, scale=100),
    "PMPERAPP": RatioMetric(_sum("penaltiesMissed"), _APPS, scale=100),
    "PCOPERAPP": RatioMetric(_sum("penaltiesConceded"), _APPS, scale=100),
    "PSVPERAPP": RatioMetric(_sum("penaltiesSaved"), _APPS, scale=100),
    "PENALTY_CONVERSION_RATE": RatioMetric(
        _sum("penaltiesScored"),
        f"{_sum('penaltiesScored')} + {_sum('penaltiesMissed')}",
        percentage=True,
    ),
}

# Base metric -> its per-appearance ratio key.
PER_APPEARANCE_METRICS: Dict[str, str] = {
    "G": "GPERAPP",
    "C": "CPERAPP",
    "FTP": "FTPPERAPP",
    "MIN": "MINPERAPP",
    "MOM": "MOMPERAPP",
    "Y": "YPERAPP",
    "R": "RPERAPP",
    "SAVES": "SAVESPERAPP",
    "OG": "OGPERAPP",
    "CLS": "CLSPERAPP",
    "PSC": "PSCPERAPP",
    "PM": "PMPERAPP",
    "PCO": "PCOPERAPP",
    "PSV": "PSVPERAPP",
}

# Player position codes stored on MatchDetail.class
POSITION_CODES: Dict[str, str] = {
    "goalkeeper": "GK",
    "keeper": "GK",
    "defender": "DEF",
    "midfielder": "MID",
    "forward": "FWD",
    "striker": "FWD",
}

POSITION_NAMES: Dict[str, str] = {
    "GK": "goalkeeper",
    "DEF": "defender",
    "MID": "midfielder",
    "FWD": "forward",
}

# Seasons with per-season properties on the Player summary node.
KNOWN_SEASONS: Tuple[str, ...] = tuple(
    f"{year}/{(year + 1) % 100:02d}" for year in range(2016, 2031)
)

_SEASONAL_PREFIXES = {"G": "goals", "APP": "apps"}

# (metric, season) -> Player property, e.g. ("G", "2017/18") -> "goals201718"
SEASONAL_SUMMARY_FIELDS: Dict[Tuple[str, str], str] = {
    (metric, season): f"{prefix}{season.replace('/', '')}"
    for metric, prefix in _SEASONAL_PREFIXES.items()
    for season in KNOWN_SEASONS
}


def seasonal_summary_field(metric: str, season: Optional[str]) -> Optional[str]:
    if not season:
        return None
    return SEASONAL_SUMMARY_FIELDS.get((metric, season))
