from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Severity tiers reported by the scanner."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> "Severity":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


class EnvironmentType(str, Enum):
    CONTROL = "control"
    GATEWAY = "gateway"
    SWITCH = "switch"


class ScanMode(str, Enum):
    """How the images of an environment were scanned."""

    ONLINE = "online"
    AIRGAPPED = "airgapped"
    AIRGAPPED_PARALLEL = "airgapped-parallel"


class EnvironmentStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Rule:
    """
    Vulnerability class metadata, i.e. one entry of `tool.driver.rules`.
    """

    id: str
    description: str = ""
    tags: tuple[str, ...] = ()
    security_severity: float | None = None
    default_level: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    """The rule as found in the source document, kept for passthrough."""

    @property
    def severity(self) -> Severity:
        for tag in self.tags:
            severity = Severity.parse(tag)
            if severity is not Severity.UNKNOWN:
                return severity
        return Severity.UNKNOWN


@dataclass(frozen=True)
class Finding:
    """
    One vulnerability instance at one location, i.e. one entry of `results`.
    """

    rule_id: str
    severity: Severity
    location_uri: str
    message: str
    level: str | None = None
    properties: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.rule_id, self.location_uri)


@dataclass
class RawReport:
    """
    One scan result for one container image on one environment.
    """

    source: str
    """Path of the file the report was read from."""
    source_image_name: str
    image_content_hash: str | None
    findings: list[Finding] = field(default_factory=list)
    rules: dict[str, Rule] = field(default_factory=dict)
    tool: dict[str, Any] = field(default_factory=dict)
    """`tool.driver` of the source run without its rules."""


@dataclass(frozen=True)
class CanonicalImage:
    """
    The deduplication-resolved identity of a container image.
    """

    reference: str
    container_name: str
    version: str
    image_content_hash: str | None = None

    @property
    def container_with_version(self) -> str:
        return f"{self.container_name}:{self.version}"


@dataclass(frozen=True)
class EnvironmentInfo:
    name: str
    type: EnvironmentType
    scan_mode: ScanMode


@dataclass(frozen=True)
class DeploymentContext:
    """Opaque passthrough strings describing the CI run."""

    deployment_id: str = "unknown"
    commit_sha: str = "unknown"
    repository: str = "unknown"
    actor: str = "unknown"

    @property
    def workflow_run_url(self) -> str:
        return f"https://github.com/{self.repository}/actions/runs/{self.deployment_id}"


@dataclass
class SeverityCounts:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low

    def add(self, severity: Severity, count: int = 1) -> None:
        if severity is Severity.UNKNOWN:
            return
        attr = severity.value.lower()
        setattr(self, attr, getattr(self, attr) + count)

    def to_dict(self) -> dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "total": self.total,
        }


@dataclass
class MergedResults:
    """Findings and rules produced by one merge stage."""

    findings: list[Finding] = field(default_factory=list)
    rules: list[Rule] = field(default_factory=list)
    raw_counts: SeverityCounts = field(default_factory=SeverityCounts)
    """Counts of surviving findings per severity tier."""
    rule_counts: SeverityCounts = field(default_factory=SeverityCounts)
    """Counts of distinct rules per severity tier."""


@dataclass
class ImageReportSet:
    """All raw reports of one environment mapped to the same canonical image."""

    image: CanonicalImage
    reports: list[RawReport] = field(default_factory=list)

    @property
    def total_findings(self) -> int:
        return sum(len(report.findings) for report in self.reports)


@dataclass
class EnvironmentReportSet:
    """
    The consolidated findings of one environment, plus the bookkeeping the
    summary needs.
    """

    environment: EnvironmentInfo
    status: EnvironmentStatus
    deployed_images: list[str] = field(default_factory=list)
    report_files: int = 0
    invalid_files: int = 0
    mapped_reports: int = 0
    unmatched_reports: int = 0
    processed_images: int = 0
    clean_images: int = 0
    results: MergedResults = field(default_factory=MergedResults)
    tool: dict[str, Any] = field(default_factory=dict)
    message: str = ""
    output_path: str | None = None


@dataclass
class ConsolidatedReport:
    """The cross-environment union of every successful environment."""

    environments: list[EnvironmentReportSet]
    results: MergedResults
    tool: dict[str, Any] = field(default_factory=dict)
    output_path: str | None = None

    @property
    def succeeded(self) -> list[EnvironmentReportSet]:
        return [
            env
            for env in self.environments
            if env.status is EnvironmentStatus.SUCCEEDED
        ]
