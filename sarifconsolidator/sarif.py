"""
Rendering of consolidated results as SARIF 2.1.0 documents, and writing them.
"""

import copy
import json
import logging
import os
import tempfile
from typing import Any

from sarifconsolidator.config import Config
from sarifconsolidator.image_names import container_info
from sarifconsolidator.models import ConsolidatedReport
from sarifconsolidator.models import EnvironmentReportSet
from sarifconsolidator.models import Finding
from sarifconsolidator.models import MergedResults
from sarifconsolidator.models import Rule
from sarifconsolidator.models import Severity
from sarifconsolidator.severity import level_for
from sarifconsolidator.severity import security_severity_for

logger = logging.getLogger(__name__)

SARIF_VERSION = "2.1.0"
SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/main/sarif-2.1/schema/sarif-schema-2.1.0.json"

TOOL_NAME = "trivy"
ENVIRONMENT_LABEL = "vlab"
SCAN_SCOPE = "production-deployment"
ENVIRONMENT_DEDUP_STRATEGY = "unique_by_rule_id_and_location"
FINAL_DEDUP_STRATEGY = "unique_by_rule_id"

ENVIRONMENT_REPORT_NAME = "trivy-consolidated-{name}.sarif"
FINAL_REPORT_NAME = "trivy-security-scan.sarif"


def scan_category(scan_mode: str) -> str:
    return f"vm-container-runtime-scan-{scan_mode}"


def render_rule(rule: Rule) -> dict[str, Any]:
    rendered = copy.deepcopy(rule.raw)
    rendered["id"] = rule.id
    properties = rendered.get("properties")
    if not isinstance(properties, dict):
        properties = rendered["properties"] = {}
    if rule.security_severity is None:
        properties["security-severity"] = str(security_severity_for(rule))
    if rule.tags and "tags" not in properties:
        properties["tags"] = list(rule.tags)
    if not rule.default_level:
        default_configuration = rendered.get("defaultConfiguration")
        if not isinstance(default_configuration, dict):
            default_configuration = rendered["defaultConfiguration"] = {}
        default_configuration["level"] = level_for(rule.severity)
    return rendered


def _with_uri(location: Any, uri: str) -> dict[str, Any]:
    location = location if isinstance(location, dict) else {}
    physical_location = location.get("physicalLocation")
    if not isinstance(physical_location, dict):
        physical_location = location["physicalLocation"] = {}
    artifact_location = physical_location.get("artifactLocation")
    if not isinstance(artifact_location, dict):
        artifact_location = physical_location["artifactLocation"] = {}
    artifact_location["uri"] = uri
    return location


def render_result(finding: Finding) -> dict[str, Any]:
    rendered = copy.deepcopy(finding.raw)
    # Indexes point into the rule list of the source document
    rendered.pop("ruleIndex", None)
    rendered["ruleId"] = finding.rule_id
    if finding.severity is Severity.UNKNOWN and finding.level:
        rendered["level"] = finding.level
    else:
        rendered["level"] = level_for(finding.severity)
    message = rendered.get("message")
    rendered["message"] = {
        **(message if isinstance(message, dict) else {}),
        "text": finding.message,
    }

    locations = rendered.get("locations")
    if not isinstance(locations, list) or not locations:
        locations = [{}]
    rendered["locations"] = [_with_uri(loc, finding.location_uri) for loc in locations]
    if finding.properties:
        rendered["properties"] = finding.properties
    return rendered


def _driver(
    tool: dict[str, Any], rules: list[Rule], config: Config
) -> dict[str, Any]:
    driver = copy.deepcopy(tool)
    driver.setdefault("name", TOOL_NAME)
    driver["informationUri"] = (
        f"https://github.com/{config.deployment.repository}/security"
    )
    driver["rules"] = [render_rule(rule) for rule in rules]
    return driver


def _deployment_context(config: Config) -> dict[str, str]:
    deployment = config.deployment
    return {
        "deploymentId": deployment.deployment_id,
        "commitSha": deployment.commit_sha,
        "repository": deployment.repository,
        "triggeredBy": deployment.actor,
        "workflowRun": deployment.workflow_run_url,
    }


def _container_details(images: list[str]) -> list[dict[str, str]]:
    details = []
    for image in images:
        name, version = container_info(image)
        details.append(
            {
                "image": image,
                "container": image.rsplit("/", 1)[-1],
                "name": name,
                "version": version,
            }
        )
    return details


def _document(run: dict[str, Any]) -> dict[str, Any]:
    return {
        "version": SARIF_VERSION,
        "$schema": SARIF_SCHEMA,
        "runs": [run],
    }


def _run(
    results: MergedResults,
    tool: dict[str, Any],
    properties: dict[str, Any],
    config: Config,
) -> dict[str, Any]:
    return {
        "tool": {"driver": _driver(tool, results.rules, config)},
        "results": [render_result(finding) for finding in results.findings],
        "properties": properties,
    }


def render_environment_report(
    env_set: EnvironmentReportSet, config: Config
) -> dict[str, Any]:
    environment = env_set.environment
    images = env_set.deployed_images
    properties = {
        "vmContext": {
            "name": environment.name,
            "type": environment.type.value,
            "scanTimestamp": config.scan_time,
            "environment": ENVIRONMENT_LABEL,
            "scanMode": environment.scan_mode.value,
            "totalContainerImages": len(images),
        },
        "containerContext": {
            "scannedImages": list(images),
            "registry": config.registry_repo,
            "containerDetails": _container_details(images),
            "aggregatedVulnerabilities": env_set.results.raw_counts.to_dict(),
            "deduplicatedVulnerabilities": env_set.results.rule_counts.to_dict(),
        },
        "deploymentContext": _deployment_context(config),
        "scanMetadata": {
            "tool": TOOL_NAME,
            "category": scan_category(environment.scan_mode.value),
            "scanScope": SCAN_SCOPE,
            "consolidatedReport": True,
            "imageCount": len(images),
            "deduplicationStrategy": ENVIRONMENT_DEDUP_STRATEGY,
        },
    }
    return _document(_run(env_set.results, env_set.tool, properties, config))


def render_consolidated_report(
    report: ConsolidatedReport, config: Config
) -> dict[str, Any]:
    succeeded = report.succeeded
    modes = {env.environment.scan_mode.value for env in succeeded}
    scan_mode = modes.pop() if len(modes) == 1 else "mixed"
    properties = {
        "vmContexts": [
            {
                "name": env.environment.name,
                "type": env.environment.type.value,
                "scanMode": env.environment.scan_mode.value,
                "status": env.status.value,
                "totalContainerImages": len(env.deployed_images),
                "findings": len(env.results.findings),
            }
            for env in report.environments
        ],
        "scanTimestamp": config.scan_time,
        "aggregatedVulnerabilities": report.results.raw_counts.to_dict(),
        "deduplicatedVulnerabilities": report.results.rule_counts.to_dict(),
        "deploymentContext": _deployment_context(config),
        "scanMetadata": {
            "tool": TOOL_NAME,
            "category": scan_category(scan_mode),
            "scanScope": SCAN_SCOPE,
            "consolidatedReport": True,
            "finalConsolidation": True,
            "vmCount": len(succeeded),
            "imageCount": sum(len(env.deployed_images) for env in succeeded),
            "deduplicationStrategy": FINAL_DEDUP_STRATEGY,
            "preservesAllLocations": True,
        },
    }
    return _document(_run(report.results, report.tool, properties, config))


def write_document(document: dict[str, Any], path: str) -> None:
    """
    Write a SARIF document to `path`. The file is written next to its target
    and renamed into place, so readers never see a partial document.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise
    logger.debug("Wrote %s", path)


def export_github_env(env_file: str, final_report_path: str) -> None:
    """Tell later workflow steps where the final report is."""
    with open(env_file, "a", encoding="utf-8") as f:
        f.write(f"SARIF_FILE={final_report_path}\n")
        f.write("UPLOAD_SARIF=true\n")
