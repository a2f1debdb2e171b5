"""
Human-readable summary of a consolidation run.
"""

from sarifconsolidator.models import ConsolidatedReport
from sarifconsolidator.models import EnvironmentReportSet
from sarifconsolidator.models import EnvironmentStatus
from sarifconsolidator.models import SeverityCounts


def format_counts(counts: SeverityCounts) -> str:
    return (
        f"{counts.total} total "
        f"({counts.critical} critical, {counts.high} high, "
        f"{counts.medium} medium, {counts.low} low)"
    )


def format_environment_summary(env_set: EnvironmentReportSet) -> list[str]:
    environment = env_set.environment
    header = (
        f"{environment.name} ({environment.type.value}, "
        f"{environment.scan_mode.value}): {env_set.status.value}"
    )
    if env_set.status is not EnvironmentStatus.SUCCEEDED:
        if env_set.message:
            header += f" - {env_set.message}"
        return [header]

    lines = [
        header,
        f"  Deployed images:    {len(env_set.deployed_images)}",
        f"  Report files:       {env_set.report_files}"
        + (f" ({env_set.invalid_files} invalid)" if env_set.invalid_files else ""),
        f"  Mapped reports:     {env_set.mapped_reports}",
        f"  Unmatched reports:  {env_set.unmatched_reports}",
        f"  Images with issues: {env_set.processed_images}",
        f"  Clean images:       {env_set.clean_images}",
        f"  Findings:           {format_counts(env_set.results.raw_counts)}",
        f"  Vulnerabilities:    {format_counts(env_set.results.rule_counts)}",
    ]
    if env_set.output_path:
        lines.append(f"  Report:             {env_set.output_path}")
    return lines


def format_summary(report: ConsolidatedReport) -> list[str]:
    """
    Summary lines for the whole run: one block per environment followed by
    the totals of the final report.
    """
    lines = ["SARIF consolidation summary", ""]
    for env_set in report.environments:
        lines.extend(format_environment_summary(env_set))
    lines.extend(
        [
            "",
            f"Environments consolidated: {len(report.succeeded)}"
            f"/{len(report.environments)}",
            f"Findings:        {format_counts(report.results.raw_counts)}",
            f"Vulnerabilities: {format_counts(report.results.rule_counts)}",
        ]
    )
    created = [env.output_path for env in report.environments if env.output_path]
    if report.output_path:
        created.append(report.output_path)
    if created:
        lines.append("Files created:")
        lines.extend(f"  {path}" for path in created)
    return lines
