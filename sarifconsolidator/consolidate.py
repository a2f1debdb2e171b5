"""
Consolidation of raw per-image SARIF reports into one report per environment
and one final report across environments.

Every environment is processed on its own: ingest, resolve image identities,
merge per canonical image, enrich, merge per environment. An environment that
has nothing to report is skipped and one whose merge fails is marked failed;
neither stops the others. The final report is the union of the environments
that succeeded.
"""

import logging
import os

from sarifconsolidator.config import Config
from sarifconsolidator.enrich import enrich_results
from sarifconsolidator.ingest import environment_info
from sarifconsolidator.ingest import ingest_environment
from sarifconsolidator.ingest import list_environments
from sarifconsolidator.merge import merge_image_group
from sarifconsolidator.merge import merge_results
from sarifconsolidator.merge import MergeError
from sarifconsolidator.models import ConsolidatedReport
from sarifconsolidator.models import EnvironmentReportSet
from sarifconsolidator.models import EnvironmentStatus
from sarifconsolidator.models import MergedResults
from sarifconsolidator.resolver import resolve_reports
from sarifconsolidator.sarif import ENVIRONMENT_REPORT_NAME
from sarifconsolidator.sarif import export_github_env
from sarifconsolidator.sarif import FINAL_REPORT_NAME
from sarifconsolidator.sarif import render_consolidated_report
from sarifconsolidator.sarif import render_environment_report
from sarifconsolidator.sarif import write_document
from sarifconsolidator.stats import get_stats_client

logger = logging.getLogger(__name__)
stat_handler = get_stats_client(__name__)


class ConsolidationError(RuntimeError):
    """Raised when no environment could be consolidated."""

    pass


def consolidate_environment(config: Config, env_name: str) -> EnvironmentReportSet:
    """
    Build the consolidated result set of one environment. Nothing is written.
    """
    environment = environment_info(env_name, config.scan_mode)
    env_input = ingest_environment(
        config.raw_dir,
        config.results_dir,
        environment,
        config.report_pattern,
    )
    env_set = EnvironmentReportSet(
        environment=environment,
        status=EnvironmentStatus.SKIPPED,
        deployed_images=env_input.deployed_images,
        report_files=env_input.report_files,
        invalid_files=env_input.invalid_files,
    )
    if env_input.skip_reason:
        logger.warning("Skipping %s: %s", env_name, env_input.skip_reason)
        stat_handler.incr("environments_skipped_count")
        env_set.message = env_input.skip_reason
        return env_set
    if not env_input.reports:
        logger.error(
            "None of the %d report files for %s could be parsed",
            env_input.report_files,
            env_name,
        )
        stat_handler.incr("environments_failed_count")
        env_set.status = EnvironmentStatus.FAILED
        env_set.message = "no readable report files"
        return env_set

    resolution = resolve_reports(env_input.reports, env_input.deployed_images, env_name)
    env_set.mapped_reports = resolution.mapped_reports
    env_set.unmatched_reports = len(resolution.unmatched)
    env_set.tool = env_input.reports[0].tool

    try:
        image_results: list[MergedResults] = []
        for group in resolution.groups:
            if group.total_findings == 0:
                logger.info(
                    "Skipping %s - no vulnerabilities found across %d report(s)",
                    group.image.reference,
                    len(group.reports),
                )
                env_set.clean_images += 1
                continue
            merged = merge_image_group(group)
            image_results.append(enrich_results(merged, environment, group.image))
            env_set.processed_images += 1
        env_set.results = merge_results(f"environment {env_name}", image_results)
    except MergeError as e:
        logger.error("Consolidation failed for %s: %s", env_name, e)
        stat_handler.incr("environments_failed_count")
        env_set.status = EnvironmentStatus.FAILED
        env_set.message = str(e)
        env_set.results = MergedResults()
        return env_set

    env_set.status = EnvironmentStatus.SUCCEEDED
    return env_set


def write_environment_report(env_set: EnvironmentReportSet, config: Config) -> None:
    path = os.path.join(
        config.output_dir,
        ENVIRONMENT_REPORT_NAME.format(name=env_set.environment.name),
    )
    write_document(render_environment_report(env_set, config), path)
    env_set.output_path = path
    logger.info(
        "Wrote consolidated report for %s to %s", env_set.environment.name, path
    )


def consolidate(config: Config) -> ConsolidatedReport:
    """
    Run the whole consolidation and write every report.

    Raises:
        ConsolidationError: If the raw-report root is missing or no
            environment succeeded
    """
    if not os.path.isdir(config.raw_dir):
        raise ConsolidationError(f"Raw SARIF directory not found: {config.raw_dir}")

    logger.info(
        "Starting SARIF consolidation: raw=%s results=%s output=%s",
        config.raw_dir,
        config.results_dir,
        config.output_dir,
    )
    environments: list[EnvironmentReportSet] = []
    for env_name in list_environments(config.raw_dir):
        logger.info("Processing reports for %s", env_name)
        env_set = consolidate_environment(config, env_name)
        if env_set.status is EnvironmentStatus.SUCCEEDED:
            try:
                write_environment_report(env_set, config)
            except OSError as e:
                logger.error("Unable to write the report for %s: %s", env_name, e)
                env_set.status = EnvironmentStatus.FAILED
                env_set.message = str(e)
        environments.append(env_set)

    succeeded = [
        env for env in environments if env.status is EnvironmentStatus.SUCCEEDED
    ]
    if not succeeded:
        raise ConsolidationError("No SARIF files were successfully processed")

    try:
        results = merge_results("final", [env.results for env in succeeded])
    except MergeError as e:
        raise ConsolidationError(str(e)) from e

    report = ConsolidatedReport(
        environments=environments,
        results=results,
        tool=succeeded[0].tool,
    )
    final_path = os.path.join(config.output_dir, FINAL_REPORT_NAME)
    write_document(render_consolidated_report(report, config), final_path)
    report.output_path = final_path
    stat_handler.gauge("final_findings_count", len(results.findings))
    logger.info("Final consolidated SARIF report created: %s", final_path)

    if config.github_env_file:
        export_github_env(config.github_env_file, final_path)
    return report
