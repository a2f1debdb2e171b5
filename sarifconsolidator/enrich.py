import dataclasses

from sarifconsolidator.image_names import EXPORT_PATH_RE
from sarifconsolidator.models import CanonicalImage
from sarifconsolidator.models import EnvironmentInfo
from sarifconsolidator.models import Finding
from sarifconsolidator.models import MergedResults
from sarifconsolidator.severity import aggregate


def artifact_name(original_uri: str, container_name: str) -> str:
    """
    Derive a short artifact name from the location a scanner reported.

    Export tarballs say nothing about the affected file, so the container name
    stands in for them. Paths are reduced to their last segment.
    """
    if EXPORT_PATH_RE.match(original_uri):
        return container_name
    if "/" in original_uri:
        return original_uri.rsplit("/", 1)[-1]
    return original_uri


def enrich_finding(
    finding: Finding, environment: EnvironmentInfo, image: CanonicalImage
) -> Finding:
    original_uri = finding.location_uri
    binary_name = artifact_name(original_uri, image.container_name)
    artifact_path = f"{environment.name}/{image.container_with_version}"
    properties = dict(finding.properties)
    properties.update(
        {
            "vmName": environment.name,
            "vmType": environment.type.value,
            "scanMode": environment.scan_mode.value,
            "containerName": image.container_name,
            "containerVersion": image.version,
            "containerWithVersion": image.container_with_version,
            "sourceImage": image.reference,
            "originalArtifactUri": original_uri,
            "binaryName": binary_name,
            "scanContext": f"runtime-deployment-{environment.scan_mode.value}",
            "artifactPath": artifact_path,
            "deduplicated": True,
        }
    )
    return dataclasses.replace(
        finding,
        location_uri=f"{artifact_path}/{binary_name}",
        message=f"[{artifact_path}] {finding.message}",
        properties=properties,
    )


def enrich_results(
    results: MergedResults, environment: EnvironmentInfo, image: CanonicalImage
) -> MergedResults:
    """
    Rewrite every finding of one image into its environment/image context.
    Rules are passed through untouched.
    """
    enriched = MergedResults(
        findings=[
            enrich_finding(finding, environment, image) for finding in results.findings
        ],
        rules=list(results.rules),
    )
    return aggregate(enriched)
