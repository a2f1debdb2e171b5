"""
Recovery of registry image references from scanner image names.

Airgapped environments cannot scan images straight from a registry. They
export every image to `/tmp/trivy-export-<pid>/<reference>.tar` first, with
`/` and `:` in the reference replaced by `_`, and the scanner then reports the
tar path as the image name. The export file name is the only trace of the
original reference left, so it is reconstructed here with an ordered list of
named rules. The first rule that matches wins; the naive rule always matches
and therefore goes last.

The naive rule cannot tell an underscore that used to be a separator from one
that was part of the name, e.g. `docker.io_my_app_1.0` could be
`docker.io/my/app:1.0` or `docker.io/my_app:1.0`. Names like that come out
wrong, then fail the deployed-image match and are reported as unmatched.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

EXPORT_PATH_PREFIX = "/tmp/trivy-export-"
EXPORT_PATH_RE = re.compile(r"^/tmp/trivy-export-.*\.tar$")


@dataclass(frozen=True)
class ReconstructionRule:
    name: str
    parse: Callable[[str], str | None]


def _regex_rule(pattern: str, template: str) -> Callable[[str], str | None]:
    compiled = re.compile(pattern)

    def parse(export_name: str) -> str | None:
        match = compiled.match(export_name)
        if not match:
            return None
        groups = match.groupdict()
        groups["path"] = groups["path"].replace("_", "/")
        return template.format(**groups)

    return parse


def _naive(export_name: str) -> str | None:
    """Every `_` becomes `/` except the last one, which becomes `:`."""
    head, sep, tail = export_name.rpartition("_")
    if not sep:
        return export_name
    return f"{head.replace('_', '/')}:{tail}"


RECONSTRUCTION_RULES: list[ReconstructionRule] = [
    ReconstructionRule(
        "docker-hub-v-version",
        _regex_rule(
            r"^docker\.io_(?P<path>.+)_v(?P<version>[0-9].*)$",
            "docker.io/{path}:v{version}",
        ),
    ),
    ReconstructionRule(
        "docker-hub-plain-version",
        _regex_rule(
            r"^docker\.io_(?P<path>.+)_(?P<version>[0-9].*)$",
            "docker.io/{path}:{version}",
        ),
    ),
    ReconstructionRule(
        "registry-port-v-version",
        _regex_rule(
            r"^(?P<host>[A-Za-z0-9.-]+)_(?P<port>[0-9]+)_(?P<path>.+)_v(?P<version>[0-9].*)$",
            "{host}:{port}/{path}:v{version}",
        ),
    ),
    ReconstructionRule("naive", _naive),
]


def is_export_path(image_name: str) -> bool:
    return image_name.startswith(EXPORT_PATH_PREFIX)


def export_basename(image_name: str) -> str:
    """Strip the temporary directory and the `.tar` suffix from an export path."""
    basename = posixpath.basename(image_name)
    if basename.endswith(".tar"):
        basename = basename[: -len(".tar")]
    return basename


def reconstruct_reference(export_name: str) -> tuple[str, str]:
    """
    Apply the reconstruction rules in order.

    Returns a tuple of (reference, name of the rule that produced it).
    """
    for rule in RECONSTRUCTION_RULES:
        reference = rule.parse(export_name)
        if reference is not None:
            return reference, rule.name
    # _naive never returns None
    raise AssertionError("no reconstruction rule matched")


def resolve_image_name(image_name: str) -> str:
    """
    Return the registry reference for a scanner image name. Direct registry
    references are returned unchanged.
    """
    if not is_export_path(image_name):
        return image_name
    reference, rule_name = reconstruct_reference(export_basename(image_name))
    logger.debug(
        "Reconstructed %s from export path %s using rule '%s'.",
        reference,
        image_name,
        rule_name,
    )
    return reference


def container_info(reference: str) -> tuple[str, str]:
    """
    Split a registry reference into (container name, version).

    `172.30.0.1:31000/org/zot:v2.1.1` gives `("zot", "v2.1.1")`. References
    without a tag get version `latest`; a digest is used as the version when
    the reference is pinned with `@`.
    """
    last = reference.rsplit("/", 1)[-1]
    name, _, digest = last.partition("@")
    if ":" in name:
        name, version = name.split(":", 1)
    else:
        version = digest or "latest"
    if not name:
        name = reference
    return name, version or "latest"
