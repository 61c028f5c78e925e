import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from src.language_codes import LocaleDescriptor, make_locale
from src.logger import get_logger

logger = get_logger(__name__)

# Get base directory (project root)
BASE_DIR = Path(__file__).parent.parent
CONFIG_DIR = BASE_DIR / "config"
CONFIG_FILE = CONFIG_DIR / "config.json"
ENV_FILE = BASE_DIR / ".env"

# Pipeline constants
DEFAULT_POLL_SECONDS = 4.0
DEFAULT_REGION = "us-east-1"
MASKED_VALUE = "********"

# Default configuration template
DEFAULT_CONFIG = {
    "aws": {
        "region": DEFAULT_REGION,
        "bucket": "",
        "input_prefix": "translations/input",
        "output_prefix": "translations/output",
        "role_arn": None,
    },
    "pipeline": {
        "output_root": str(Path("translations") / "jobs"),
        "i18n_base_dir": None,
        "force_fallback": False,
        "poll_seconds": DEFAULT_POLL_SECONDS,
        "simulate_i18n": False,
    },
    "locales": {
        "source": {"folder_code": "en", "service_code": "en", "name": "English"},
        "targets": [
            {"folder_code": "ph", "service_code": "tl", "name": "Filipino (Tagalog, Philippines)"},
            {"folder_code": "vi", "service_code": "vi", "name": "Vietnamese"},
        ],
    },
    "log_mode": "info",
}

# Environment variable -> (section, key, parser)
ENV_OVERRIDES = {
    "REGION": ("aws", "region", str),
    "S3_BUCKET": ("aws", "bucket", str),
    "S3_INPUT_PREFIX": ("aws", "input_prefix", str),
    "S3_OUTPUT_PREFIX": ("aws", "output_prefix", str),
    "TRANSLATE_ROLE_ARN": ("aws", "role_arn", str),
    "TRANSLATION_OUTPUT_ROOT": ("pipeline", "output_root", str),
    "I18N_BASE_DIR": ("pipeline", "i18n_base_dir", str),
    "TRANSLATE_SYNC_FALLBACK": ("pipeline", "force_fallback", lambda v: v.strip() == "1"),
    "TRANSLATE_POLL_SECONDS": ("pipeline", "poll_seconds", float),
    "SIMULATE_I18N": ("pipeline", "simulate_i18n", lambda v: v.strip() == "1"),
}


def create_default_config(config_file: Optional[Path] = None, overwrite: bool = False) -> bool:
    """
    Create the default config.json file.

    Returns:
        True if the file was written, False if it already existed
    """
    target = config_file or CONFIG_FILE
    if target.exists() and not overwrite:
        logger.info(f"Config file already exists: {target}")
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, 'w', encoding='utf-8') as f:
        json.dump(DEFAULT_CONFIG, f, indent=4, ensure_ascii=False)
    logger.info(f"Created default config file: {target}")
    return True


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_config_file(config_file: Path) -> Dict[str, Any]:
    if not config_file.exists():
        return {}
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config file {config_file}: {e}")
        logger.warning("Ignoring config file, using defaults")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Config file {config_file} does not contain an object, ignoring")
        return {}
    return data


def _apply_env_overrides(config: Dict[str, Any], environ) -> Dict[str, Any]:
    for env_name, (section, key, parser) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            config.setdefault(section, {})[key] = parser(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")

    log_mode = environ.get("LOG_MODE")
    if log_mode in ("off", "info", "debug"):
        config["log_mode"] = log_mode
    return config


def load_config(config_file: Optional[Path] = None, environ=None) -> Dict[str, Any]:
    """
    Load the configuration.

    Layers, lowest priority first: DEFAULT_CONFIG, the JSON config file,
    then environment variables (a .env file in the project root is loaded
    without overriding variables already set).
    """
    if environ is None:
        load_dotenv(ENV_FILE, override=False)
        environ = os.environ

    config = _deep_merge(DEFAULT_CONFIG, _read_config_file(config_file or CONFIG_FILE))
    return _apply_env_overrides(config, environ)


def save_config(config: Dict[str, Any], config_file: Optional[Path] = None):
    """Save the configuration to the JSON config file."""
    target = config_file or CONFIG_FILE
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            json.dump(config, f, indent=4, ensure_ascii=False)
        logger.info(f"Configuration saved to {target}")
    except OSError as e:
        logger.error(f"Failed to save config to {target}: {e}")
        raise


def update_config_file(updates: Dict[str, Any], config_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Merge updates into the JSON config file only.

    Environment overrides are not written back.
    """
    target = config_file or CONFIG_FILE
    file_config = _deep_merge(_read_config_file(target), updates)
    save_config(file_config, target)
    return file_config


def get_locales(config: Dict[str, Any]) -> Tuple[LocaleDescriptor, List[LocaleDescriptor]]:
    """Return the source locale and the ordered target locales."""
    locales = config.get("locales") or DEFAULT_CONFIG["locales"]
    source = make_locale(locales.get("source") or DEFAULT_CONFIG["locales"]["source"])
    targets = [make_locale(item) for item in locales.get("targets") or []]
    return source, targets


def masked_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of the config that is safe to expose over HTTP."""
    safe = copy.deepcopy(config)
    if safe.get("aws", {}).get("role_arn"):
        safe["aws"]["role_arn"] = MASKED_VALUE
    return safe


@dataclass(frozen=True)
class RunnerSettings:
    """Effective, read-only settings for one pipeline run."""
    region: str
    bucket: str
    input_prefix: str
    output_prefix: str
    role_arn: Optional[str]
    output_root: Path
    i18n_base_dir: Optional[Path]
    force_fallback: bool
    poll_seconds: float
    simulate_i18n: bool
    source: LocaleDescriptor
    targets: Tuple[LocaleDescriptor, ...]

    @property
    def batch_enabled(self) -> bool:
        """Batch jobs need a data access role and must not be overridden."""
        return bool(self.role_arn) and not self.force_fallback

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None, **overrides) -> "RunnerSettings":
        """
        Build settings from a config dict.

        Keyword overrides win over the config when they are not None.
        """
        if config is None:
            config = load_config()
        aws = config.get("aws", {})
        pipeline = config.get("pipeline", {})
        source, targets = get_locales(config)

        base_dir = pipeline.get("i18n_base_dir")
        values = {
            "region": aws.get("region") or DEFAULT_REGION,
            "bucket": aws.get("bucket") or "",
            "input_prefix": aws.get("input_prefix") or "",
            "output_prefix": aws.get("output_prefix") or "",
            "role_arn": aws.get("role_arn") or None,
            "output_root": Path(pipeline.get("output_root") or DEFAULT_CONFIG["pipeline"]["output_root"]),
            "i18n_base_dir": Path(base_dir) if base_dir else None,
            "force_fallback": bool(pipeline.get("force_fallback", False)),
            "poll_seconds": float(pipeline.get("poll_seconds") or DEFAULT_POLL_SECONDS),
            "simulate_i18n": bool(pipeline.get("simulate_i18n", False)),
            "source": source,
            "targets": tuple(targets),
        }
        for key, value in overrides.items():
            if key not in values:
                raise TypeError(f"Unknown runner setting: {key}")
            if value is None:
                continue
            if key in ("output_root", "i18n_base_dir"):
                value = Path(value)
            elif key == "targets":
                value = tuple(value)
            values[key] = value
        return cls(**values)

    def describe(self) -> Dict[str, Any]:
        """Settings as plain data for the runner init event."""
        return {
            "region": self.region,
            "output_root": str(self.output_root),
            "bucket": self.bucket,
            "input_prefix": self.input_prefix,
            "output_prefix": self.output_prefix,
            "role_arn": self.role_arn,
            "force_fallback": self.force_fallback,
            "targets": [t.folder_code for t in self.targets],
        }
