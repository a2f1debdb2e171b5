"""
Reading raw per-image SARIF reports and deployed-image lists from disk.

Expected layout:

    {raw_dir}/{environment}/**/{image}_critical.sarif
    {results_dir}/{environment}/container_images.txt
"""

import fnmatch
import json
import logging
import os
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from sarifconsolidator.models import EnvironmentInfo
from sarifconsolidator.models import EnvironmentType
from sarifconsolidator.models import Finding
from sarifconsolidator.models import RawReport
from sarifconsolidator.models import Rule
from sarifconsolidator.models import ScanMode
from sarifconsolidator.severity import derive_severity
from sarifconsolidator.severity import parse_security_severity
from sarifconsolidator.stats import get_stats_client

logger = logging.getLogger(__name__)
stat_handler = get_stats_client(__name__)

DEFAULT_REPORT_PATTERN = "*_critical.sarif"
CONTAINER_IMAGES_FILE = "container_images.txt"
UNKNOWN_URI = "unknown"

DEFAULT_SCAN_MODE = {
    EnvironmentType.CONTROL: ScanMode.ONLINE,
    EnvironmentType.GATEWAY: ScanMode.AIRGAPPED,
    EnvironmentType.SWITCH: ScanMode.AIRGAPPED,
}


class ReportParseError(ValueError):
    """Raised when a raw report is not a usable SARIF document."""

    pass


@dataclass
class EnvironmentInput:
    """Everything ingestion found for one environment."""

    environment: EnvironmentInfo
    reports: list[RawReport] = field(default_factory=list)
    deployed_images: list[str] = field(default_factory=list)
    report_files: int = 0
    invalid_files: int = 0
    skip_reason: str | None = None


def environment_type(name: str) -> EnvironmentType:
    lowered = name.lower()
    if lowered.startswith("gateway"):
        return EnvironmentType.GATEWAY
    if lowered.startswith(("leaf", "spine")) or "switch" in lowered:
        return EnvironmentType.SWITCH
    # control-* and anything unrecognised are scanned like control nodes
    return EnvironmentType.CONTROL


def environment_info(name: str, scan_mode: ScanMode | None = None) -> EnvironmentInfo:
    env_type = environment_type(name)
    return EnvironmentInfo(
        name=name,
        type=env_type,
        scan_mode=scan_mode or DEFAULT_SCAN_MODE[env_type],
    )


def list_environments(raw_dir: str) -> list[str]:
    """Return the environment directory names under the raw-report root, sorted."""
    return sorted(
        entry.name
        for entry in os.scandir(raw_dir)
        if entry.is_dir(follow_symlinks=True)
    )


def find_report_files(
    env_dir: str, pattern: str = DEFAULT_REPORT_PATTERN
) -> list[str]:
    """Return report files under an environment directory in sorted path order."""
    results = []
    for root, _dirs, files in os.walk(env_dir):
        for filename in files:
            if fnmatch.fnmatch(filename, pattern):
                results.append(os.path.join(root, filename))
    return sorted(results)


def read_deployed_images(results_dir: str, env_name: str) -> list[str]:
    """Read the authoritative newline-delimited image list of an environment."""
    path = os.path.join(results_dir, env_name, CONTAINER_IMAGES_FILE)
    if not os.path.isfile(path):
        logger.warning(
            "No %s found for %s at %s - every report will be unmatched.",
            CONTAINER_IMAGES_FILE,
            env_name,
            path,
        )
        return []
    try:
        with open(path, encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip()]
    except (OSError, UnicodeDecodeError) as e:
        stat_handler.incr("image_list_unreadable_count")
        logger.warning(
            "Unable to read %s for %s: %s - every report will be unmatched.",
            CONTAINER_IMAGES_FILE,
            env_name,
            e,
        )
        return []


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    if isinstance(value, dict):
        text = value.get("text")
        return text if isinstance(text, str) else ""
    return ""


def transform_rule(raw_rule: dict[str, Any]) -> Rule | None:
    rule_id = raw_rule.get("id")
    if not isinstance(rule_id, str) or not rule_id:
        return None
    properties = _mapping(raw_rule.get("properties"))
    tags = properties.get("tags")
    if not isinstance(tags, list):
        tags = []
    default_configuration = _mapping(raw_rule.get("defaultConfiguration"))
    default_level = default_configuration.get("level")
    return Rule(
        id=rule_id,
        description=_text(raw_rule.get("shortDescription"))
        or _text(raw_rule.get("fullDescription")),
        tags=tuple(tag for tag in tags if isinstance(tag, str)),
        security_severity=parse_security_severity(
            properties.get("security-severity")
        ),
        default_level=default_level if isinstance(default_level, str) else None,
        raw=raw_rule,
    )


def _artifact_uri(raw_result: dict[str, Any]) -> str:
    locations = raw_result.get("locations")
    if not isinstance(locations, list) or not locations:
        return UNKNOWN_URI
    physical_location = _mapping(_mapping(locations[0]).get("physicalLocation"))
    artifact_location = _mapping(physical_location.get("artifactLocation"))
    uri = artifact_location.get("uri")
    return uri if isinstance(uri, str) else UNKNOWN_URI


def transform_result(
    raw_result: dict[str, Any], rules: dict[str, Rule]
) -> Finding | None:
    rule_id = raw_result.get("ruleId")
    if not isinstance(rule_id, str) or not rule_id:
        return None
    message = _text(raw_result.get("message"))
    level = raw_result.get("level")
    if not isinstance(level, str):
        level = None
    return Finding(
        rule_id=rule_id,
        severity=derive_severity(level, message, rules.get(rule_id)),
        location_uri=_artifact_uri(raw_result),
        message=message,
        level=level,
        properties=dict(_mapping(raw_result.get("properties"))),
        raw=raw_result,
    )


def parse_sarif(sarif_data: Any, source: str) -> RawReport:
    """
    Turn one raw SARIF document into a RawReport.

    Args:
        sarif_data: Parsed JSON document
        source: Source identifier for log and error messages

    Raises:
        ReportParseError: If the document has no usable run or no image name
    """
    if not isinstance(sarif_data, dict):
        raise ReportParseError(f"SARIF document in {source} is not an object")
    runs = sarif_data.get("runs")
    if not isinstance(runs, list) or not runs or not isinstance(runs[0], dict):
        raise ReportParseError(f"SARIF document in {source} has no runs")
    run = runs[0]

    run_properties = run.get("properties") or {}
    if not isinstance(run_properties, dict):
        raise ReportParseError(f"Run properties in {source} are not an object")
    image_name = run_properties.get("imageName")
    if not isinstance(image_name, str) or not image_name or image_name == "null":
        raise ReportParseError(f"No imageName found in {source}")
    image_id = run_properties.get("imageID")
    if not isinstance(image_id, str) or image_id in ("", "null", "empty"):
        image_id = None

    tool = run.get("tool") or {}
    if not isinstance(tool, dict):
        raise ReportParseError(f"Tool in {source} is not an object")
    driver = tool.get("driver") or {}
    if not isinstance(driver, dict):
        raise ReportParseError(f"Tool driver in {source} is not an object")
    raw_rules = driver.get("rules") or []
    raw_results = run.get("results") or []
    if not isinstance(raw_rules, list) or not isinstance(raw_results, list):
        raise ReportParseError(f"Rules or results in {source} are not arrays")

    rules: dict[str, Rule] = {}
    for raw_rule in raw_rules:
        rule = transform_rule(raw_rule) if isinstance(raw_rule, dict) else None
        if rule is None:
            logger.warning("Skipping rule without an id in %s.", source)
            continue
        rules.setdefault(rule.id, rule)

    findings: list[Finding] = []
    for raw_result in raw_results:
        finding = None
        if isinstance(raw_result, dict):
            finding = transform_result(raw_result, rules)
        if finding is None:
            logger.warning("Skipping result without a ruleId in %s.", source)
            continue
        findings.append(finding)

    return RawReport(
        source=source,
        source_image_name=image_name,
        image_content_hash=image_id,
        findings=findings,
        rules=rules,
        tool={key: value for key, value in driver.items() if key != "rules"},
    )


def read_report_file(file_path: str) -> RawReport:
    """Read a SARIF file from disk and parse it."""
    logger.debug("Reading raw report from file: %s", file_path)
    try:
        with open(file_path, encoding="utf-8") as f:
            sarif_data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ReportParseError(f"Unable to read {file_path}: {e}") from e
    return parse_sarif(sarif_data, file_path)


def ingest_environment(
    raw_dir: str,
    results_dir: str,
    environment: EnvironmentInfo,
    pattern: str = DEFAULT_REPORT_PATTERN,
) -> EnvironmentInput:
    """
    Collect the raw reports and the deployed-image list of one environment.

    A missing or empty report directory is not an error: the environment comes
    back with `skip_reason` set and no reports. Files that cannot be parsed
    are logged and left out.
    """
    env_input = EnvironmentInput(environment=environment)
    env_dir = os.path.join(raw_dir, environment.name)
    if not os.path.isdir(env_dir):
        env_input.skip_reason = f"no report directory found at {env_dir}"
        return env_input

    report_files = find_report_files(env_dir, pattern)
    env_input.report_files = len(report_files)
    if not report_files:
        env_input.skip_reason = f"no files matching {pattern} in {env_dir}"
        return env_input

    logger.info("Found %d report files for %s", len(report_files), environment.name)
    env_input.deployed_images = read_deployed_images(results_dir, environment.name)

    for file_path in report_files:
        try:
            report = read_report_file(file_path)
        except ReportParseError as e:
            env_input.invalid_files += 1
            stat_handler.incr("reports_invalid_count")
            logger.warning("Skipping report: %s", e)
            continue
        stat_handler.incr("reports_parsed_count")
        env_input.reports.append(report)
    return env_input
