"""
Structural merges of findings and rules.

Findings are deduplicated on (ruleId, artifact location) and rules on their
id, first occurrence wins in both cases. The same functions serve the three
merge levels: per canonical image, per environment and across environments.
"""

import logging
from typing import Iterable

from sarifconsolidator.models import Finding
from sarifconsolidator.models import ImageReportSet
from sarifconsolidator.models import MergedResults
from sarifconsolidator.models import Rule
from sarifconsolidator.severity import aggregate

logger = logging.getLogger(__name__)


class MergeError(RuntimeError):
    """Raised when a merge stage loses every finding of a non-empty input."""

    pass


def merge_findings(finding_lists: Iterable[Iterable[Finding]]) -> list[Finding]:
    merged: dict[tuple[str, str], Finding] = {}
    for findings in finding_lists:
        for finding in findings:
            merged.setdefault(finding.dedup_key, finding)
    return list(merged.values())


def merge_rules(rule_lists: Iterable[Iterable[Rule]]) -> list[Rule]:
    merged: dict[str, Rule] = {}
    for rules in rule_lists:
        for rule in rules:
            merged.setdefault(rule.id, rule)
    return list(merged.values())


def _check_stage(stage: str, input_count: int, results: MergedResults) -> None:
    if input_count and not results.findings:
        raise MergeError(
            f"Merge stage '{stage}' produced no findings "
            f"from {input_count} input findings"
        )


def merge_image_group(group: ImageReportSet) -> MergedResults:
    """Merge every raw report mapped to one canonical image."""
    results = MergedResults(
        findings=merge_findings(report.findings for report in group.reports),
        rules=merge_rules(report.rules.values() for report in group.reports),
    )
    _check_stage(f"image {group.image.reference}", group.total_findings, results)
    logger.debug(
        "Merged %d report(s) of %s into %d findings and %d rules",
        len(group.reports),
        group.image.reference,
        len(results.findings),
        len(results.rules),
    )
    return aggregate(results)


def merge_results(stage: str, parts: list[MergedResults]) -> MergedResults:
    """Union already merged results, e.g. the images of one environment."""
    results = MergedResults(
        findings=merge_findings(part.findings for part in parts),
        rules=merge_rules(part.rules for part in parts),
    )
    _check_stage(stage, sum(len(part.findings) for part in parts), results)
    return aggregate(results)
