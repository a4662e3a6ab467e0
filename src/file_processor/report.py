"""Human-readable batch report rendering and writing."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from file_processor.aggregator import BatchSummary
from file_processor.models import HandlerKind, ResultEnvelope

_RULE = "=" * 72
_SECTION_RULE = "-" * 72

_KIND_TITLES = {
    HandlerKind.CSV: "CSV (sales)",
    HandlerKind.JSON: "JSON (users)",
    HandlerKind.LOG: "LOG (system)",
    HandlerKind.UNKNOWN: "Unsupported",
}


@dataclass(slots=True)
class ReportContext:
    """Batch parameters printed in the report header."""

    mode: str
    source: str
    total_time_ms: int
    timeout_ms: int | None = None
    retries: int | None = None
    max_workers: int | None = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


def render_report(
    *,
    envelopes: Sequence[ResultEnvelope],
    summary: BatchSummary,
    context: ReportContext,
) -> list[str]:
    """Render report lines: one detail line per input file plus summary sections."""

    lines = [
        _RULE,
        "FILE PROCESSING REPORT",
        _RULE,
        f"Generated at: {context.generated_at.isoformat(timespec='seconds')}",
        f"Source: {context.source}",
        f"Mode: {context.mode}",
    ]
    if context.timeout_ms is not None:
        lines.append(f"Timeout per attempt: {context.timeout_ms} ms")
    if context.retries is not None:
        lines.append(f"Retries: {context.retries}")
    if context.max_workers is not None:
        lines.append(f"Max workers: {context.max_workers}")

    lines.extend(
        [
            "",
            _SECTION_RULE,
            "SUMMARY",
            _SECTION_RULE,
            f"Files: {summary.total}",
        ],
    )
    for kind in HandlerKind:
        kind_summary = summary.by_kind[kind.value]
        if kind_summary.total:
            lines.append(
                f"  - {_KIND_TITLES[kind]}: {kind_summary.total} "
                f"(ok={kind_summary.succeeded} failed={kind_summary.failed})",
            )
    lines.extend(
        [
            f"Total time: {context.total_time_ms} ms",
            f"Succeeded: {summary.succeeded}",
            f"Failed: {summary.failed}",
            f"With line errors: {summary.partial}",
            f"Success rate: {summary.success_rate}%",
        ],
    )

    for kind in (HandlerKind.CSV, HandlerKind.JSON, HandlerKind.LOG):
        lines.extend(_metrics_section(kind, [e for e in envelopes if e.handler_kind == kind]))

    if summary.errors:
        lines.extend(["", _SECTION_RULE, "ERRORS", _SECTION_RULE])
        lines.extend(
            f"x {envelope.file_name}: [{envelope.error_kind.value}] {envelope.message}"
            for envelope in summary.errors
            if envelope.error_kind is not None
        )

    lines.extend(["", _SECTION_RULE, "FILES", _SECTION_RULE])
    lines.extend(render_file_line(envelope) for envelope in envelopes)
    lines.extend(["", _RULE, "END OF REPORT", _RULE])
    return lines


def render_file_line(envelope: ResultEnvelope) -> str:
    if envelope.ok:
        suffix = f", {len(envelope.line_errors)} line error(s)" if envelope.line_errors else ""
        return f"ok {envelope.file_name}: processed in {envelope.attempts} attempt(s){suffix}"
    kind = envelope.error_kind.value if envelope.error_kind else "error"
    return f"x {envelope.file_name}: ERROR ({kind}) - {envelope.message}"


def render_metrics(kind: HandlerKind, metrics: dict[str, Any]) -> list[str]:
    if kind == HandlerKind.CSV:
        return [
            f"  Valid records: {metrics['valid_records']}",
            f"  Invalid records: {metrics['invalid_records']}",
            f"  Unique products: {metrics['unique_products']}",
            f"  Total sales: ${metrics['total_sales']:.2f}",
        ]
    if kind == HandlerKind.JSON:
        return [
            f"  Total users: {metrics['total_users']}",
            f"  Active users: {metrics['active_users']}",
            f"  Total sessions: {metrics['total_sessions']}",
        ]
    if kind == HandlerKind.LOG:
        return [
            f"  Total lines: {metrics['total_lines']}",
            (
                "  Levels: "
                f"DEBUG({metrics['debug']}) INFO({metrics['info']}) WARN({metrics['warn']}) "
                f"ERROR({metrics['error']}) FATAL({metrics['fatal']})"
            ),
            f"  Malformed lines: {metrics['malformed_lines']}",
        ]
    return [f"  {key}: {value}" for key, value in metrics.items() if key != "errors"]


def render_line_errors(envelope: ResultEnvelope) -> list[str]:
    return [f"  line {error['line']}: {error['message']}" for error in envelope.line_errors]


def write_report(lines: list[str], *, output_dir: Path, mode: str) -> Path:
    """Write report lines to ``report_<mode>_<timestamp>.txt`` and return its path."""

    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S%fZ")
    report_path = output_dir / f"report_{mode}_{timestamp}.txt"
    report_path.write_text("\n".join(lines) + "\n", "utf-8")
    return report_path


def _metrics_section(kind: HandlerKind, envelopes: list[ResultEnvelope]) -> list[str]:
    if not envelopes:
        return []
    lines = ["", _SECTION_RULE, f"METRICS: {_KIND_TITLES[kind]}", _SECTION_RULE]
    for envelope in envelopes:
        lines.append(f"[{envelope.file_name}]")
        if envelope.ok and envelope.metrics is not None:
            lines.extend(render_metrics(kind, envelope.metrics))
            lines.extend(render_line_errors(envelope))
        else:
            lines.append(f"  ERROR: {envelope.message}")
    return lines
