from __future__ import annotations

from dataclasses import dataclass, field

from .column_spec import ColumnSpec

"""Header model: resolved mapping between column specs and one input's header.

Only ``raw_columns`` and ``mapping`` are stored; everything else is derived.
"""

__all__ = [
    "Header",
]


@dataclass(frozen=True)
class Header:
    raw_columns: list[str]  # ソースのヘッダ行 (原文のまま)
    mapping: dict[str, int]  # ColumnSpec.key -> raw_columns index
    specs: tuple[ColumnSpec, ...] = field(default=(), repr=False)

    @property
    def missing_columns(self) -> list[str]:
        return [s.key for s in self.specs if s.key not in self.mapping]

    @property
    def missing_required_columns(self) -> list[str]:
        return [s.key for s in self.specs if s.required and s.key not in self.mapping]

    @property
    def extra_columns(self) -> list[str]:
        matched = set(self.mapping.values())
        return [
            name for idx, name in enumerate(self.raw_columns)
            if idx not in matched and name.strip()
        ]

    @property
    def valid(self) -> bool:
        return not self.missing_required_columns

    def column_name(self, key: str) -> str | None:
        """Original header text matched for ``key`` (None if unmatched)."""
        idx = self.mapping.get(key)
        if idx is None:
            return None
        return self.raw_columns[idx].strip()

    def matched_specs(self) -> list[ColumnSpec]:
        """Matched specs in spec declaration order."""
        return [s for s in self.specs if s.key in self.mapping]

    def attribute_columns(self) -> dict[str, str]:
        """Reverse lookup: model attribute (and column key) -> header text.

        Built once per run and used to attribute model errors back to the
        vocabulary of the source file.
        """
        lookup: dict[str, str] = {}
        for spec in self.matched_specs():
            name = self.column_name(spec.key)
            assert name is not None
            lookup.setdefault(spec.target, name)
            lookup.setdefault(spec.key, name)
        return lookup
