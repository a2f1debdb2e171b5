import pytest

from sarifconsolidator.models import Finding
from sarifconsolidator.models import MergedResults
from sarifconsolidator.models import Rule
from sarifconsolidator.models import Severity
from sarifconsolidator.severity import aggregate
from sarifconsolidator.severity import derive_severity
from sarifconsolidator.severity import level_for
from sarifconsolidator.severity import parse_security_severity
from sarifconsolidator.severity import security_severity_for


@pytest.mark.parametrize(
    "severity,level",
    [
        (Severity.CRITICAL, "error"),
        (Severity.HIGH, "error"),
        (Severity.MEDIUM, "warning"),
        (Severity.LOW, "note"),
    ],
)
def test_level_for(severity, level):
    assert level_for(severity) == level


@pytest.mark.parametrize(
    "tags,expected",
    [
        (("CRITICAL",), 9.5),
        (("vulnerability", "HIGH"), 8.0),
        (("MEDIUM",), 5.5),
        (("LOW",), 2.0),
        ((), 0.0),
    ],
)
def test_default_security_severity(tags, expected):
    assert security_severity_for(Rule(id="CVE-1", tags=tags)) == expected


def test_numeric_score_is_preserved():
    rule = Rule(id="CVE-1", tags=("CRITICAL",), security_severity=9.8)
    assert security_severity_for(rule) == 9.8


@pytest.mark.parametrize(
    "value,expected",
    [("7.5", 7.5), (4, 4.0), ("", None), (None, None), ("high", None)],
)
def test_parse_security_severity(value, expected):
    assert parse_security_severity(value) == expected


class TestDeriveSeverity:
    def test_rule_tags_win(self):
        rule = Rule(id="CVE-1", tags=("security", "LOW"))
        assert derive_severity("error", "Severity: CRITICAL", rule) is Severity.LOW

    def test_message_when_rule_has_no_tier(self):
        rule = Rule(id="CVE-1", tags=("security",))
        result = derive_severity("error", "Vulnerability CVE-1\nSeverity: HIGH", rule)
        assert result is Severity.HIGH

    def test_level_as_last_resort(self):
        assert derive_severity("warning", "", None) is Severity.MEDIUM
        assert derive_severity("note", "", None) is Severity.LOW

    def test_error_level_alone_is_unknown(self):
        assert derive_severity("error", "no tier here", None) is Severity.UNKNOWN


def test_aggregate_computes_both_metrics():
    """Finding counts and rule counts diverge for repeated vulnerabilities."""
    rules = [
        Rule(id="CVE-1", tags=("CRITICAL",)),
        Rule(id="CVE-2", tags=("LOW",)),
        Rule(id="CVE-3", tags=()),
    ]
    findings = [
        Finding("CVE-1", Severity.CRITICAL, "a", "m"),
        Finding("CVE-1", Severity.CRITICAL, "b", "m"),
        Finding("CVE-1", Severity.CRITICAL, "c", "m"),
        Finding("CVE-2", Severity.LOW, "a", "m"),
        Finding("CVE-3", Severity.UNKNOWN, "a", "m"),
    ]

    results = aggregate(MergedResults(findings=findings, rules=rules))

    assert results.raw_counts.to_dict() == {
        "critical": 3,
        "high": 0,
        "medium": 0,
        "low": 1,
        "total": 4,
    }
    assert results.rule_counts.to_dict() == {
        "critical": 1,
        "high": 0,
        "medium": 0,
        "low": 1,
        "total": 2,
    }
