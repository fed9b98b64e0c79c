"""
Typed FFmpeg filter-graph builder.

Stages describe their processing as ``Filter`` descriptors (name + ordered
params). Text is produced only by ``str()`` right before the encoder is
invoked, so effect/transition mapping can be asserted on without FFmpeg.

    >>> str(Filter("eq", {"brightness": 0.2}))
    'eq=brightness=0.2'
    >>> str(FilterChain([Filter("xfade", {"duration": 0.5})], ["0:v", "1:v"], ["v1"]))
    '[0:v][1:v]xfade=duration=0.5[v1]'
"""

from dataclasses import dataclass, field
from typing import Any

# Characters that end a value inside a filtergraph description
_SPECIAL_CHARS = set(":,;[]'\\ ")


def format_value(value: Any) -> str:
    """Format a parameter value the way FFmpeg expects it."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.6f}".rstrip("0").rstrip(".")
    text = str(value)
    if any(ch in _SPECIAL_CHARS for ch in text):
        return "'" + text.replace("\\", "\\\\").replace("'", "'\\''") + "'"
    return text


@dataclass
class Filter:
    """A single filter: ``name=arg:arg:key=value:key=value``."""

    name: str
    params: dict[str, Any] = field(default_factory=dict)
    args: tuple[Any, ...] = ()

    def __str__(self) -> str:
        parts = [format_value(a) for a in self.args]
        parts.extend(f"{key}={format_value(value)}" for key, value in self.params.items())
        if not parts:
            return self.name
        return f"{self.name}=" + ":".join(parts)


@dataclass
class FilterChain:
    """Filters applied in sequence, optionally with input/output pad labels."""

    filters: list[Filter] = field(default_factory=list)
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)

    def append(self, filter_: Filter) -> "FilterChain":
        self.filters.append(filter_)
        return self

    def extend(self, filters: list[Filter]) -> "FilterChain":
        self.filters.extend(filters)
        return self

    def __bool__(self) -> bool:
        return bool(self.filters)

    def __str__(self) -> str:
        labels_in = "".join(f"[{label}]" for label in self.inputs)
        labels_out = "".join(f"[{label}]" for label in self.outputs)
        return labels_in + ",".join(str(f) for f in self.filters) + labels_out


@dataclass
class FilterGraph:
    """Several labelled chains, serialized for ``-filter_complex``."""

    chains: list[FilterChain] = field(default_factory=list)

    def add(self, chain: FilterChain) -> "FilterGraph":
        self.chains.append(chain)
        return self

    @property
    def filters(self) -> list[Filter]:
        return [f for chain in self.chains for f in chain.filters]

    def __str__(self) -> str:
        return ";".join(str(chain) for chain in self.chains)
