import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from pydantic import BaseModel, PositiveInt
import yaml

from .errors import SetupError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "check_config.yaml"

DEFAULT_USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:109.0) Gecko/20100101 Firefox/109.0"


@dataclass
class CheckConfig:
    """
    Central configuration for URL checking behavior.

    Values can be overridden via check_config.yaml in the working directory
    and, on top of that, by command-line options (see RunOptions).
    """

    # General
    workers: int = 1
    user_agent: str = DEFAULT_USER_AGENT
    random_user_agent: bool = False

    # HTTP probing
    request_timeout_s: float = 60.0
    max_redirects: int = 10
    bot_header: str = "x-tncms-bot-tier"

    # Retries (exponential backoff, bounded by elapsed time)
    retry_statuses: tuple[str, ...] = ("429", "405")
    backoff_initial_interval_s: float = 1.0
    backoff_multiplier: float = 0.5  # below 1.0: intervals shrink after the first step
    backoff_max_interval_s: float = 60.0
    backoff_max_elapsed_s: float = 120.0
    backoff_randomization: float = 0.5

    # robots.txt
    robots_agent: str = "*"
    robots_fetch_timeout_s: float = 10.0

    def __post_init__(self):
        # YAML gives lists
        self.retry_statuses = tuple(str(s) for s in self.retry_statuses)


def load_check_config(path: str | Path | None = None) -> CheckConfig:
    """
    Load CheckConfig from YAML if present; otherwise use defaults.

    By default, looks for `check_config.yaml` in the current working directory.
    A file that was asked for explicitly must exist; the default one may not.
    """

    required = path is not None
    if path is None:
        path = Path.cwd() / CONFIG_FILENAME

    path = Path(path)

    if not path.exists():
        if required:
            raise SetupError("load config", f"{path} does not exist")
        logger.debug("config YAML not found at %s, using defaults", path)
        return CheckConfig()

    try:
        raw = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw) or {}
    except (OSError, yaml.YAMLError) as e:
        raise SetupError("load config", f"{path}: {e}") from e

    if not isinstance(data, dict):
        logger.warning("expected mapping in %s, got %s, using defaults", path, type(data).__name__)
        return CheckConfig()

    allowed_keys = {f.name for f in fields(CheckConfig)}
    unknown = sorted(set(data) - allowed_keys)
    if unknown:
        logger.warning("ignoring unknown config keys in %s: %s", path, ", ".join(unknown))
    filtered = {k: v for k, v in data.items() if k in allowed_keys}

    config = CheckConfig(**filtered)
    if config.workers < 1:
        raise SetupError("load config", f"{path}: workers must be a positive integer, got {config.workers}")
    return config


class RunOptions(BaseModel):
    """
    Validated command-line surface of a single run.

    Overrides left as None keep whatever CheckConfig already says.
    """

    urls_path: Path = Path("urls.txt")
    output_path: Path = Path("output.csv")
    config_path: Path | None = None
    ignore_path: Path | None = None
    robots_source: str | None = None

    workers: PositiveInt | None = None
    user_agent: str | None = None
    random_user_agent: bool | None = None
    robots_agent: str | None = None

    def resolve(self, config: CheckConfig) -> CheckConfig:
        overrides = {
            name: value
            for name, value in (
                ("workers", self.workers),
                ("user_agent", self.user_agent),
                ("random_user_agent", self.random_user_agent),
                ("robots_agent", self.robots_agent),
            )
            if value is not None
        }
        return replace(config, **overrides)


DEFAULT_CHECK_CONFIG = CheckConfig()
