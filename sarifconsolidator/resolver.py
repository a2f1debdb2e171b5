"""
Mapping raw reports to canonical images.

The same image is often scanned more than once on one environment, e.g. once
through the local registry mirror and once under its upstream name. Reports
carrying the same content hash are folded into the group of the first report
seen with that hash, and that report's name becomes the canonical reference
for the rest of the run.
"""

import logging
from dataclasses import dataclass
from dataclasses import field

from sarifconsolidator.image_names import container_info
from sarifconsolidator.image_names import resolve_image_name
from sarifconsolidator.models import CanonicalImage
from sarifconsolidator.models import ImageReportSet
from sarifconsolidator.models import RawReport
from sarifconsolidator.stats import get_stats_client

logger = logging.getLogger(__name__)
stat_handler = get_stats_client(__name__)


@dataclass
class Resolution:
    """Outcome of resolving the reports of one environment."""

    groups: list[ImageReportSet] = field(default_factory=list)
    unmatched: list[tuple[RawReport, str]] = field(default_factory=list)
    """Excluded reports with the name they resolved to."""
    by_hash: dict[str, CanonicalImage] = field(default_factory=dict)

    @property
    def mapped_reports(self) -> int:
        return sum(len(group.reports) for group in self.groups)


def canonical_image(reference: str, image_content_hash: str | None) -> CanonicalImage:
    container_name, version = container_info(reference)
    return CanonicalImage(
        reference=reference,
        container_name=container_name,
        version=version,
        image_content_hash=image_content_hash,
    )


def resolve_reports(
    reports: list[RawReport],
    deployed_images: list[str],
    env_name: str,
) -> Resolution:
    """
    Match reports against the deployed-image list and group them by content
    hash, preserving input order.

    Args:
        reports: Raw reports of one environment, in input order
        deployed_images: The environment's authoritative image references
        env_name: Environment name, for log messages

    Returns:
        A Resolution. Neither argument is modified.
    """
    deployed = set(deployed_images)
    resolution = Resolution()
    group_by_hash: dict[str, ImageReportSet] = {}

    for report in reports:
        resolved_name = resolve_image_name(report.source_image_name)
        if resolved_name != report.source_image_name:
            logger.info(
                "Airgapped export detected in %s - reconstructed: %s",
                report.source,
                resolved_name,
            )

        if resolved_name not in deployed:
            logger.warning(
                "No match found in the container list of %s for %s (%s), excluding it.",
                env_name,
                resolved_name,
                report.source,
            )
            stat_handler.incr("reports_unmatched_count")
            resolution.unmatched.append((report, resolved_name))
            continue

        content_hash = report.image_content_hash
        if content_hash is None:
            # Without a hash a report can only ever stand for itself
            group = ImageReportSet(image=canonical_image(resolved_name, None))
            resolution.groups.append(group)
            group.reports.append(report)
            logger.info("Matched %s -> %s (no imageID)", report.source, resolved_name)
            continue

        image = resolution.by_hash.get(content_hash)
        if image is None:
            image = canonical_image(resolved_name, content_hash)
            resolution.by_hash[content_hash] = image
            group = ImageReportSet(image=image)
            group_by_hash[content_hash] = group
            resolution.groups.append(group)
            logger.info(
                "New image %s -> %s (imageID: %s)",
                report.source,
                resolved_name,
                content_hash,
            )
        else:
            group = group_by_hash[content_hash]
            logger.info(
                "Duplicate image %s -> %s (same imageID: %s)",
                report.source,
                image.reference,
                content_hash,
            )
        group.reports.append(report)

    logger.info(
        "Mapped %d/%d reports of %s to container images",
        resolution.mapped_reports,
        len(reports),
        env_name,
    )
    return resolution
