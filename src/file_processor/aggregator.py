"""Batch outcome aggregation for reporting."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from file_processor.models import HandlerKind, ResultEnvelope


@dataclass(slots=True)
class KindSummary:
    """Per handler-kind counters."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass(slots=True)
class BatchSummary:
    """Aggregate counters over a complete envelope set."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    partial: int = 0
    success_rate: float = 0.0
    by_kind: dict[str, KindSummary] = field(default_factory=dict)
    errors_by_kind: dict[str, int] = field(default_factory=dict)
    errors: list[ResultEnvelope] = field(default_factory=list)


def summarize(
    envelopes: Mapping[str, ResultEnvelope] | Sequence[ResultEnvelope],
) -> BatchSummary:
    """Count outcomes per handler kind and collect error envelopes.

    Mappings are read in key order and sequences in their own order, so the
    result does not depend on the order in which files finished.
    """

    ordered = (
        [envelopes[key] for key in sorted(envelopes)]
        if isinstance(envelopes, Mapping)
        else list(envelopes)
    )

    summary = BatchSummary(
        by_kind={kind.value: KindSummary() for kind in HandlerKind},
    )
    for envelope in ordered:
        kind_summary = summary.by_kind[envelope.handler_kind.value]
        summary.total += 1
        kind_summary.total += 1
        if envelope.ok:
            summary.succeeded += 1
            kind_summary.succeeded += 1
            if envelope.line_errors:
                summary.partial += 1
            continue
        summary.failed += 1
        kind_summary.failed += 1
        summary.errors.append(envelope)
        if envelope.error_kind is not None:
            key = envelope.error_kind.value
            summary.errors_by_kind[key] = summary.errors_by_kind.get(key, 0) + 1

    if summary.total:
        summary.success_rate = round(summary.succeeded / summary.total * 100, 1)
    return summary
