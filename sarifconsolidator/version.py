"""
Version reporting for ``sarif-consolidator --version``.

The string names the installed distribution, the SARIF version written to the
reports and, when running from a git work tree, the checkout it came from.
"""

import logging
import os
import subprocess
from importlib import metadata

from sarifconsolidator.sarif import SARIF_VERSION

logger = logging.getLogger(__name__)

DISTRIBUTION = "sarif-consolidator"
UNRELEASED = "dev"
GIT_DESCRIBE = ["git", "describe", "--tags", "--always", "--dirty"]


def installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        logger.debug("No installed metadata for %s.", DISTRIBUTION)
        return UNRELEASED


def source_revision(work_tree: str | None = None) -> str | None:
    """
    Describe the git checkout the package is loaded from, for example
    ``v0.1.0-3-gabc1234-dirty``. Installed copies outside a work tree get None.
    """
    if work_tree is None:
        work_tree = os.path.dirname(os.path.abspath(__file__))
    try:
        completed = subprocess.run(
            GIT_DESCRIBE,
            cwd=work_tree,
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Cannot describe %s: %s", work_tree, e)
        return None
    revision = completed.stdout.strip()
    if completed.returncode != 0 or not revision:
        return None
    return revision


def get_version_string() -> str:
    details = [f"SARIF {SARIF_VERSION}"]
    revision = source_revision()
    if revision:
        details.append(f"git {revision}")
    return f"{DISTRIBUTION} {installed_version()} ({', '.join(details)})"
