"""Tests for the notification formatter."""

from __future__ import annotations

from src.models import IPUpdateReport
from src.notify.formatter import FAIL_FALLBACK, HEADER, NO_CHANGE_NOTE, format_report
from tests.conftest import make_family, make_report_payload


def _format(payload: dict) -> str:
    return format_report(IPUpdateReport.model_validate(payload))


def test_ipv4_ok_contains_result_address_and_domains() -> None:
    text = _format({"ipv4": {"result": "OK", "addr": "1.2.3.4", "domains": "a.com"}})
    assert "OK" in text
    assert "1.2.3.4" in text
    assert "a.com" in text
    assert NO_CHANGE_NOTE not in text


def test_ipv4_ok_golden_output() -> None:
    text = _format(make_report_payload(
        ipv4=make_family(domains="a.com,b.com"),
        ipv6=make_family(result="NO_CHANGE", addr="", domains=""),
    ))
    assert text == (
        f"{HEADER}\n\n"
        "*IPv4*\n"
        "  Result: `OK`\n"
        "  Address: `1.2.3.4`\n"
        "  Domains: `a.com,b.com`\n\n"
        "*IPv6*\n"
        "  Result: `NO_CHANGE`"
    )


def test_all_no_change_appends_note_without_details() -> None:
    text = _format(make_report_payload(
        ipv4=make_family(result="NO_CHANGE", addr="", domains=""),
        ipv6=make_family(result="NO_CHANGE", addr="", domains=""),
    ))
    assert "no change" in text.lower()
    assert text.endswith(NO_CHANGE_NOTE)
    assert "Address:" not in text
    assert "Domains:" not in text
    assert text.count("Result: `NO_CHANGE`") == 2


def test_no_change_hides_addr_even_if_present() -> None:
    text = _format(make_report_payload(ipv4=make_family(result="NO_CHANGE")))
    assert "1.2.3.4" not in text
    assert "a.com" not in text


def test_fail_uses_addr_as_diagnostic() -> None:
    text = _format(make_report_payload(
        ipv6=make_family(result="FAIL", addr="timeout contacting provider"),
    ))
    assert "Result: `FAIL`" in text
    assert "Error: `timeout contacting provider`" in text
    assert "Domains:" not in text
    assert NO_CHANGE_NOTE not in text


def test_fail_without_addr_uses_fallback() -> None:
    text = _format(make_report_payload(ipv4=make_family(result="FAIL", addr="")))
    assert f"Error: `{FAIL_FALLBACK}`" in text


def test_ok_with_empty_fields_shows_placeholder() -> None:
    text = _format(make_report_payload(ipv4=make_family(addr="", domains="")))
    assert "Address: `-`" in text
    assert "Domains: `-`" in text


def test_backticks_cannot_break_code_span() -> None:
    text = _format(make_report_payload(ipv4=make_family(result="FAIL", addr="bad `x`")))
    assert "Error: `bad 'x'`" in text


def test_output_is_deterministic() -> None:
    payload = make_report_payload(
        ipv4=make_family(),
        ipv6=make_family(result="FAIL", addr="err"),
    )
    assert _format(payload) == _format(payload)
