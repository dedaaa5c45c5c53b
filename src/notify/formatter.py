"""Render ddns-go update reports as Telegram messages (legacy Markdown)."""

from __future__ import annotations

from src.models import AddressReport, IPUpdateReport, UpdateResult

HEADER = "🌐 *DDNS IP update*"
NO_CHANGE_NOTE = "No change detected."
FAIL_FALLBACK = "unknown error"
_EMPTY = "-"


def _code(value: str) -> str:
    # A stray backtick would close the code span early
    return "`" + value.replace("`", "'") + "`"


def _family_lines(label: str, report: AddressReport) -> tuple[list[str], bool]:
    """Lines for one address family and whether a detail line was emitted."""
    lines = [f"*{label}*", f"  Result: {_code(report.result.value)}"]
    if report.result is UpdateResult.OK:
        lines.append(f"  Address: {_code(report.addr or _EMPTY)}")
        lines.append(f"  Domains: {_code(report.domains or _EMPTY)}")
        return lines, True
    if report.result is UpdateResult.FAIL:
        lines.append(f"  Error: {_code(report.addr or FAIL_FALLBACK)}")
        return lines, True
    return lines, False


def format_report(report: IPUpdateReport) -> str:
    """Deterministic message text for ``report``."""
    blocks = [HEADER]
    has_detail = False
    for label, family in report.families():
        lines, detailed = _family_lines(label, family)
        blocks.append("\n".join(lines))
        has_detail = has_detail or detailed
    if not has_detail:
        blocks.append(NO_CHANGE_NOTE)
    return "\n\n".join(blocks)
