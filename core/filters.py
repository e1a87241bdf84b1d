"""Entity filtering and ordering for Home Assistant entity lists.

FilterSpec comes from the source's dashboard.yaml block:

    allowed_domains: [cover, light, camera, sensor]   # omit for the default set
    name_filters: ["big door", "kitchen", "boatsy"]   # case-insensitive, ANY
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from config import DEFAULT_DISPLAYABLE_DOMAINS


@dataclass(frozen=True)
class FilterSpec:
    allowed_domains: Optional[FrozenSet[str]] = None
    name_substrings: Optional[Tuple[str, ...]] = None
    enabled: bool = True

    @classmethod
    def from_config(cls, config: Dict) -> "FilterSpec":
        domains = config.get("allowed_domains")
        names = config.get("name_filters")
        return cls(
            allowed_domains=frozenset(domains) if domains is not None else None,
            name_substrings=tuple(names) if names is not None else None,
            enabled=config.get("apply_filters", True),
        )

    @classmethod
    def disabled(cls) -> "FilterSpec":
        return cls(enabled=False)

    @property
    def domains(self) -> FrozenSet[str]:
        if self.allowed_domains is not None:
            return self.allowed_domains
        return DEFAULT_DISPLAYABLE_DOMAINS


def apply_filter(entities: Iterable, spec: FilterSpec) -> List:
    """Domain allow-list first, then the OR-ed name substring match."""
    entities = list(entities)
    if not spec.enabled:
        return entities

    domains = spec.domains
    filtered = [e for e in entities if e.domain in domains]

    terms = [t.lower() for t in (spec.name_substrings or ()) if t]
    if terms:
        filtered = [
            e for e in filtered
            if any(term in e.name.lower() for term in terms)
        ]
    return filtered


def sort_entities(entities: Iterable) -> List:
    """Order by (domain, name), both ascending and case-sensitive."""
    return sorted(entities, key=lambda e: (e.domain, e.name))
