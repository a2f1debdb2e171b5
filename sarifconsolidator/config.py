from dataclasses import dataclass
from dataclasses import field
from datetime import datetime

from sarifconsolidator.ingest import DEFAULT_REPORT_PATTERN
from sarifconsolidator.models import DeploymentContext
from sarifconsolidator.models import ScanMode
from sarifconsolidator.settings import DEFAULT_REGISTRY_REPO
from sarifconsolidator.settings import get_deployment_context
from sarifconsolidator.settings import get_github_env_file
from sarifconsolidator.settings import get_registry_repo
from sarifconsolidator.settings import parse_and_validate_scan_mode
from sarifconsolidator.settings import settings

DEFAULT_RAW_DIR = "raw-sarif-reports"
DEFAULT_RESULTS_DIR = "trivy-reports"
DEFAULT_OUTPUT_DIR = "sarif-reports"


def current_scan_time() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass
class Config:
    """
    Options for one consolidation run.

    :type raw_dir: string
    :param raw_dir: Root of the raw per-environment report directories.
    :type results_dir: string
    :param results_dir: Root of the per-environment result directories holding
        the deployed-image lists.
    :type output_dir: string
    :param output_dir: Where consolidated reports are written.
    :type report_pattern: string
    :param report_pattern: File name glob selecting raw reports.
    :type scan_mode: ScanMode
    :param scan_mode: Optional scan mode applied to every environment instead
        of the one inferred from its name.
    :type scan_time: string
    :param scan_time: Timestamp embedded in every report. Fix it to get
        byte-identical output across runs.
    """

    raw_dir: str = DEFAULT_RAW_DIR
    results_dir: str = DEFAULT_RESULTS_DIR
    output_dir: str = DEFAULT_OUTPUT_DIR
    report_pattern: str = DEFAULT_REPORT_PATTERN
    scan_mode: ScanMode | None = None
    scan_time: str = field(default_factory=current_scan_time)
    deployment: DeploymentContext = field(default_factory=DeploymentContext)
    registry_repo: str = DEFAULT_REGISTRY_REPO
    github_env_file: str | None = None

    @classmethod
    def from_settings(
        cls,
        raw_dir: str = DEFAULT_RAW_DIR,
        results_dir: str = DEFAULT_RESULTS_DIR,
        output_dir: str | None = None,
        report_pattern: str | None = None,
        scan_mode: str | None = None,
        scan_time: str | None = None,
    ) -> "Config":
        """
        Build a Config from explicit arguments, falling back to the settings
        (settings.toml, SARIFCONSOLIDATOR_* and CI environment variables) for
        anything not given.
        """
        return cls(
            raw_dir=raw_dir,
            results_dir=results_dir,
            output_dir=output_dir
            or settings.get("output", {}).get("dir")
            or DEFAULT_OUTPUT_DIR,
            report_pattern=report_pattern
            or settings.get("scan", {}).get("report_pattern")
            or DEFAULT_REPORT_PATTERN,
            scan_mode=parse_and_validate_scan_mode(
                scan_mode or settings.get("scan", {}).get("mode")
            ),
            scan_time=scan_time or current_scan_time(),
            deployment=get_deployment_context(),
            registry_repo=get_registry_repo(),
            github_env_file=get_github_env_file(),
        )
