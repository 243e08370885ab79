"""Metric data models"""
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from prometheus_client.core import GaugeMetricFamily


LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_label_names(label_names: Sequence[str]) -> List[str]:
    """Return a list of problems with ``label_names``, empty when all are usable"""
    problems = []
    seen = set()
    for name in label_names:
        if not LABEL_NAME_RE.match(name):
            problems.append(f"invalid label name {name!r}")
        elif name.startswith("__"):
            problems.append(f"label name {name!r} is reserved")
        if name in seen:
            problems.append(f"duplicate label name {name!r}")
        seen.add(name)
    return problems


@dataclass
class QueryMetricFamily:
    """Metric family materialized from one configured query.

    ``label_names`` is fixed when the family is built. ``observations`` maps a
    tuple of label values to the latest value seen for it; setting a value
    overwrites, it never accumulates. Label tuples that stop appearing in
    query results are kept until :meth:`clear` is called.
    """
    name: str
    help_text: str
    label_names: Tuple[str, ...]
    observations: Dict[Tuple[str, ...], float] = field(default_factory=dict)

    def set(self, label_values: Iterable[str], value: float) -> None:
        key = tuple(label_values)
        if len(key) != len(self.label_names):
            raise ValueError(
                f"{self.name} expects {len(self.label_names)} label values, got {len(key)}"
            )
        self.observations[key] = value

    def get(self, label_values: Iterable[str]) -> float:
        return self.observations[tuple(label_values)]

    def clear(self) -> None:
        self.observations.clear()

    def to_prometheus(self, with_samples: bool = True) -> GaugeMetricFamily:
        """Build the prometheus_client family, optionally without samples for describe()"""
        family = GaugeMetricFamily(self.name, self.help_text, labels=list(self.label_names))
        if with_samples:
            for label_values, value in self.observations.items():
                family.add_metric(list(label_values), value)
        return family
