"""
Severity aggregation for merged findings.

Two metrics are computed for every merge stage and reported side by side:

- raw counts: one per surviving finding, so a vulnerability present at three
  locations counts three times;
- rule counts: one per distinct rule whose tags carry the severity label.

They measure different things and are expected to diverge whenever one
vulnerability class shows up at more than one location.
"""

import logging
import re
from typing import Iterable

from sarifconsolidator.models import Finding
from sarifconsolidator.models import MergedResults
from sarifconsolidator.models import Rule
from sarifconsolidator.models import Severity
from sarifconsolidator.models import SeverityCounts

logger = logging.getLogger(__name__)

LEVEL_BY_SEVERITY = {
    Severity.CRITICAL: "error",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "note",
    Severity.UNKNOWN: "none",
}

DEFAULT_SECURITY_SEVERITY = {
    Severity.CRITICAL: 9.5,
    Severity.HIGH: 8.0,
    Severity.MEDIUM: 5.5,
    Severity.LOW: 2.0,
    Severity.UNKNOWN: 0.0,
}

# Used only when neither the rule tags nor the message name a tier
SEVERITY_BY_LEVEL = {
    "warning": Severity.MEDIUM,
    "note": Severity.LOW,
}

# Trivy writes e.g. "Severity: HIGH" into the result message
_MESSAGE_SEVERITY_RE = re.compile(r"Severity:\s*([A-Za-z]+)")


def level_for(severity: Severity) -> str:
    return LEVEL_BY_SEVERITY[severity]


def security_severity_for(rule: Rule) -> float:
    """Return the rule's numeric score, or the tier default when it has none."""
    if rule.security_severity is not None:
        return rule.security_severity
    return DEFAULT_SECURITY_SEVERITY[rule.severity]


def parse_security_severity(value) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric security-severity value %r.", value)
        return None


def derive_severity(level: str | None, message: str, rule: Rule | None) -> Severity:
    """
    Work out the severity tier of a result.

    The rule's tags are authoritative. Scanners that ship results without
    tagged rules still put the tier in the message text, and the SARIF level
    is the last resort; `error` is ambiguous between critical and high so it
    maps to UNKNOWN there.
    """
    if rule is not None and rule.severity is not Severity.UNKNOWN:
        return rule.severity
    match = _MESSAGE_SEVERITY_RE.search(message or "")
    if match:
        severity = Severity.parse(match.group(1))
        if severity is not Severity.UNKNOWN:
            return severity
    return SEVERITY_BY_LEVEL.get((level or "").lower(), Severity.UNKNOWN)


def count_findings(findings: Iterable[Finding]) -> SeverityCounts:
    counts = SeverityCounts()
    for finding in findings:
        counts.add(finding.severity)
    return counts


def count_rules(rules: Iterable[Rule]) -> SeverityCounts:
    counts = SeverityCounts()
    for rule in rules:
        counts.add(rule.severity)
    return counts


def aggregate(results: MergedResults) -> MergedResults:
    """Attach both severity metrics to a merge result, in place."""
    results.raw_counts = count_findings(results.findings)
    results.rule_counts = count_rules(results.rules)
    return results
