import logging
import os

from dynaconf import Dynaconf
from statsd import StatsClient

from sarifconsolidator.models import DeploymentContext
from sarifconsolidator.models import ScanMode
from sarifconsolidator.stats import set_stats_client

logger = logging.getLogger(__name__)


settings = Dynaconf(
    includes=["settings.toml"],
    load_dotenv=True,
    merge_enabled=True,
    envvar_prefix="SARIFCONSOLIDATOR",
)

DEFAULT_REGISTRY_REPO = "127.0.0.1:30000"
UNKNOWN = "unknown"

# CI variables read when the matching setting is not configured
CI_ENV_FALLBACKS = {
    ("deployment", "id"): "GITHUB_RUN_ID",
    ("deployment", "commit_sha"): "GITHUB_SHA",
    ("deployment", "repository"): "GITHUB_REPOSITORY",
    ("deployment", "actor"): "GITHUB_ACTOR",
    ("registry", "repo"): "HHFAB_REG_REPO",
    ("github", "env_file"): "GITHUB_ENV",
}


def get_setting(section: str, key: str, default=None):
    """
    Look up `section.key` in the settings, then in the CI environment
    variable mapped to it, then fall back to `default`.
    """
    value = settings.get(section, {}).get(key)
    if value in (None, ""):
        env_var = CI_ENV_FALLBACKS.get((section, key))
        if env_var:
            value = os.environ.get(env_var)
    if value in (None, ""):
        return default
    return value


def get_deployment_context() -> DeploymentContext:
    return DeploymentContext(
        deployment_id=str(get_setting("deployment", "id", UNKNOWN)),
        commit_sha=str(get_setting("deployment", "commit_sha", UNKNOWN)),
        repository=str(get_setting("deployment", "repository", UNKNOWN)),
        actor=str(get_setting("deployment", "actor", UNKNOWN)),
    )


def get_registry_repo() -> str:
    return str(get_setting("registry", "repo", DEFAULT_REGISTRY_REPO))


def get_github_env_file() -> str | None:
    return get_setting("github", "env_file")


def parse_and_validate_scan_mode(scan_mode: str | None) -> ScanMode | None:
    """
    Ensures that a user-supplied scan mode is one we know about.
    :param scan_mode: scan mode as given on the command line or in the settings
    :return: The parsed ScanMode, or None when no override was given
    """
    if not scan_mode:
        return None
    try:
        return ScanMode(scan_mode.strip().lower())
    except ValueError:
        valid_modes = ", ".join(mode.value for mode in ScanMode)
        raise ValueError(
            f'Error parsing `scan_mode`. You specified "{scan_mode}". '
            f"Our full list of valid values is: {valid_modes}.",
        )


def configure_stats_client() -> None:
    """Install a statsd client when `statsd.enabled` is set."""
    if not settings.get("statsd", {}).get("enabled", False):
        return
    statsd_host = settings.get("statsd", {}).get("host", "127.0.0.1")
    statsd_port = settings.get("statsd", {}).get("port", 8125)
    statsd_prefix = settings.get("statsd", {}).get("prefix", "")
    logger.debug(
        f"statsd enabled. Sending metrics to server {statsd_host}:{statsd_port}. "
        f'Metrics have prefix "{statsd_prefix}".',
    )
    set_stats_client(
        StatsClient(
            host=statsd_host,
            port=statsd_port,
            prefix=statsd_prefix,
        ),
    )
