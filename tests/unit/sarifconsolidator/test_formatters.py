from sarifconsolidator.formatters import format_counts
from sarifconsolidator.formatters import format_environment_summary
from sarifconsolidator.formatters import format_summary
from sarifconsolidator.models import ConsolidatedReport
from sarifconsolidator.models import EnvironmentInfo
from sarifconsolidator.models import EnvironmentReportSet
from sarifconsolidator.models import EnvironmentStatus
from sarifconsolidator.models import EnvironmentType
from sarifconsolidator.models import MergedResults
from sarifconsolidator.models import ScanMode
from sarifconsolidator.models import SeverityCounts

CONTROL_1 = EnvironmentInfo("control-1", EnvironmentType.CONTROL, ScanMode.ONLINE)
GATEWAY_1 = EnvironmentInfo("gateway-1", EnvironmentType.GATEWAY, ScanMode.AIRGAPPED)


def test_format_counts():
    counts = SeverityCounts(critical=1, high=2, medium=3, low=0)
    assert format_counts(counts) == "6 total (1 critical, 2 high, 3 medium, 0 low)"


def test_skipped_environment_is_one_line():
    env_set = EnvironmentReportSet(
        environment=GATEWAY_1,
        status=EnvironmentStatus.SKIPPED,
        message="no files matching *_critical.sarif",
    )
    assert format_environment_summary(env_set) == [
        "gateway-1 (gateway, airgapped): skipped - no files matching *_critical.sarif"
    ]


def test_format_summary_lists_created_files():
    succeeded = EnvironmentReportSet(
        environment=CONTROL_1,
        status=EnvironmentStatus.SUCCEEDED,
        deployed_images=["ghcr.io/org/zot:v2.1.1"],
        report_files=2,
        invalid_files=1,
        mapped_reports=1,
        processed_images=1,
        output_path="out/trivy-consolidated-control-1.sarif",
    )
    skipped = EnvironmentReportSet(
        environment=GATEWAY_1, status=EnvironmentStatus.SKIPPED
    )
    report = ConsolidatedReport(
        environments=[succeeded, skipped],
        results=MergedResults(),
        output_path="out/trivy-security-scan.sarif",
    )

    lines = format_summary(report)

    assert "  Report files:       2 (1 invalid)" in lines
    assert "Environments consolidated: 1/2" in lines
    assert lines[-3:] == [
        "Files created:",
        "  out/trivy-consolidated-control-1.sarif",
        "  out/trivy-security-scan.sarif",
    ]
