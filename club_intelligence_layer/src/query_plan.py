"""Result types produced by the query builders."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union
import json
import re

_PARAM = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")


def _literal(value: Any) -> str:
    """Render a parameter value as a Cypher literal for display."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_literal(v) for v in value) + "]"
    text = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{text}'"


@dataclass(frozen=True)
class QueryPlan:
    """A parameterized Cypher query ready for execution.

    ``query`` only references ``$name`` placeholders; every value taken from
    the question lives in ``params``.
    """
    query: str
    params: Dict[str, Any] = field(default_factory=dict)
    domain: str = "player"
    shape: str = "summary"
    metric: Optional[str] = None
    description: str = ""

    def render_for_display(self) -> str:
        """Copy of the query with literals substituted. Never execute this."""
        def substitute(m: re.Match) -> str:
            name = m.group(1)
            if name not in self.params:
                return m.group(0)
            return _literal(self.params[name])

        return _PARAM.sub(substitute, self.query)

    def cache_key_material(self) -> str:
        return self.query + json.dumps(self.params, sort_keys=True, default=str)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "params": dict(self.params),
            "domain": self.domain,
            "shape": self.shape,
            "metric": self.metric,
            "description": self.description,
        }


@dataclass(frozen=True)
class NotFound:
    """The question could not be mapped to anything in the graph."""
    domain: str
    reason: str


@dataclass(frozen=True)
class QueryError:
    """Executing a plan failed or timed out."""
    domain: str
    message: str
    query: Optional[str] = None


BuildResult = Union[QueryPlan, NotFound]
