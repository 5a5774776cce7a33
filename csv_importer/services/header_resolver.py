from __future__ import annotations

import logging
from collections.abc import Sequence

from ..models.column_spec import ColumnSpec
from ..models.header import Header

"""Header resolution: raw CSV header cells -> column specs.

Each raw column is offered to the specs in declaration order; the first
spec that matches and is still unbound takes it. A raw column binds at most
one spec and a spec binds at most one raw column. Pure function of inputs.
"""

__all__ = [
    "resolve_header",
]

logger = logging.getLogger(__name__)


def resolve_header(raw_header: Sequence[str], specs: Sequence[ColumnSpec]) -> Header:
    """Match header cells against column specs.

    Args:
        raw_header: Header cells as read from the input
        specs: Column specifications of the job

    Returns:
        Header with ``mapping`` of spec key -> raw column index
    """
    mapping: dict[str, int] = {}
    for idx, raw in enumerate(raw_header):
        for spec in specs:
            if spec.key in mapping:
                continue
            if spec.matches(raw):
                mapping[spec.key] = idx
                break

    header = Header(raw_columns=list(raw_header), mapping=mapping, specs=tuple(specs))
    logger.debug(
        "header matched=%s missing=%s extra=%s",
        {k: raw_header[i] for k, i in mapping.items()},
        header.missing_columns,
        header.extra_columns,
    )
    return header
