"""
Unit tests for sarifconsolidator.resolver.
"""

import copy

from sarifconsolidator.ingest import parse_sarif
from sarifconsolidator.resolver import resolve_reports
from tests.data.sarif.trivy_sarif_samples import BUSYBOX_SARIF
from tests.data.sarif.trivy_sarif_samples import CONTROL_1_CONTAINER_IMAGES
from tests.data.sarif.trivy_sarif_samples import KLIPPER_EXPORT_SARIF
from tests.data.sarif.trivy_sarif_samples import KLIPPER_REFERENCE
from tests.data.sarif.trivy_sarif_samples import LEGACY_ZOT_SARIF
from tests.data.sarif.trivy_sarif_samples import ZOT_HASH
from tests.data.sarif.trivy_sarif_samples import ZOT_MIRROR_REFERENCE
from tests.data.sarif.trivy_sarif_samples import ZOT_MIRROR_SARIF
from tests.data.sarif.trivy_sarif_samples import ZOT_UPSTREAM_REFERENCE
from tests.data.sarif.trivy_sarif_samples import ZOT_UPSTREAM_SARIF


def test_same_hash_maps_to_first_reference():
    """Reports sharing an imageID fold into the group of the first one seen."""
    # Arrange
    mirror = parse_sarif(ZOT_MIRROR_SARIF, "mirror.sarif")
    upstream = parse_sarif(ZOT_UPSTREAM_SARIF, "upstream.sarif")

    # Act
    resolution = resolve_reports(
        [mirror, upstream], CONTROL_1_CONTAINER_IMAGES, "control-1"
    )

    # Assert
    assert len(resolution.groups) == 1
    group = resolution.groups[0]
    assert group.image.reference == ZOT_MIRROR_REFERENCE
    assert group.image.container_name == "zot"
    assert group.image.version == "v2.1.1"
    assert group.image.image_content_hash == ZOT_HASH
    assert group.reports == [mirror, upstream]
    assert resolution.by_hash[ZOT_HASH].reference == ZOT_MIRROR_REFERENCE
    assert resolution.mapped_reports == 2


def test_canonical_reference_follows_input_order():
    mirror = parse_sarif(ZOT_MIRROR_SARIF, "mirror.sarif")
    upstream = parse_sarif(ZOT_UPSTREAM_SARIF, "upstream.sarif")

    resolution = resolve_reports(
        [upstream, mirror], CONTROL_1_CONTAINER_IMAGES, "control-1"
    )

    assert [g.image.reference for g in resolution.groups] == [ZOT_UPSTREAM_REFERENCE]


def test_unmatched_report_is_excluded():
    busybox = parse_sarif(BUSYBOX_SARIF, "busybox.sarif")
    mirror = parse_sarif(ZOT_MIRROR_SARIF, "mirror.sarif")

    resolution = resolve_reports(
        [busybox, mirror], CONTROL_1_CONTAINER_IMAGES, "control-1"
    )

    assert [g.image.reference for g in resolution.groups] == [ZOT_MIRROR_REFERENCE]
    assert resolution.unmatched == [(busybox, "docker.io/library/busybox:1.36")]
    assert resolution.mapped_reports == 1


def test_export_path_is_reconstructed_before_matching():
    klipper = parse_sarif(KLIPPER_EXPORT_SARIF, "klipper.sarif")

    resolution = resolve_reports([klipper], CONTROL_1_CONTAINER_IMAGES, "control-1")

    assert resolution.unmatched == []
    assert resolution.groups[0].image.reference == KLIPPER_REFERENCE
    assert resolution.groups[0].image.container_name == "klipper-helm"


def test_reports_without_hash_are_never_grouped():
    legacy = parse_sarif(LEGACY_ZOT_SARIF, "legacy-1.sarif")
    legacy_again = parse_sarif(LEGACY_ZOT_SARIF, "legacy-2.sarif")

    resolution = resolve_reports(
        [legacy, legacy_again], CONTROL_1_CONTAINER_IMAGES, "control-1"
    )

    assert len(resolution.groups) == 2
    assert all(g.image.image_content_hash is None for g in resolution.groups)
    assert resolution.by_hash == {}


def test_empty_deployed_list_excludes_everything():
    mirror = parse_sarif(ZOT_MIRROR_SARIF, "mirror.sarif")

    resolution = resolve_reports([mirror], [], "control-1")

    assert resolution.groups == []
    assert len(resolution.unmatched) == 1


def test_inputs_are_not_modified():
    reports = [
        parse_sarif(ZOT_MIRROR_SARIF, "mirror.sarif"),
        parse_sarif(BUSYBOX_SARIF, "busybox.sarif"),
    ]
    deployed = list(CONTROL_1_CONTAINER_IMAGES)
    reports_before = copy.copy(reports)

    resolve_reports(reports, deployed, "control-1")

    assert reports == reports_before
    assert deployed == CONTROL_1_CONTAINER_IMAGES
