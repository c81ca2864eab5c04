"""
Configuration Loader

Loads YAML configuration files for the retailer registry and the
extraction engine (tier timeouts, retry policies, breaker thresholds),
and overlays service endpoints and credentials from the environment.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from ..models import ErrorCategory

logger = logging.getLogger(__name__)


def _get_config_dir() -> Path:
    """Get the config directory path."""
    # Try relative to this file first
    module_dir = Path(__file__).parent.parent.parent
    config_dir = module_dir / 'config'

    if config_dir.exists():
        return config_dir

    # Try current working directory
    cwd_config = Path.cwd() / 'config'
    if cwd_config.exists():
        return cwd_config

    raise FileNotFoundError(
        f"Config directory not found. Tried: {config_dir}, {cwd_config}"
    )


def load_config(filename: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of the config file (e.g., 'retailers.yaml')

    Returns:
        Parsed YAML content as dictionary (empty dict for an empty file)

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    config_path = _get_config_dir() / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def load_retailer_entries(filename: str = 'retailers.yaml') -> List[Dict[str, Any]]:
    """
    Load raw retailer entries in registration order.

    Returns:
        List of retailer dicts

    Example:
        [
            {'domain': 'oldnavy.gap.com', 'name': 'Old Navy',
             'selectors': {'price': ['[data-test="product-price"]', ...]},
             'requires_js_rendering': True},
            ...
        ]
    """
    config = load_config(filename)
    return config.get('retailers', [])


@dataclass
class TierSettings:
    """Timeout and retry budget for one extraction tier."""
    timeout_s: float = 15.0
    max_attempts: int = 2
    base_delay_ms: int = 1000
    jitter_ratio: float = 0.1
    max_delay_ms: int = 8000
    retryable: Tuple[str, ...] = ('network_error', 'timeout')


@dataclass
class BreakerSettings:
    """Circuit breaker thresholds shared by every price-scrape breaker."""
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout_s: float = 30.0
    half_open_max_calls: int = 1


DEFAULT_TIER_SETTINGS: Dict[str, TierSettings] = {
    'json_backdoor': TierSettings(timeout_s=10.0),
    'standard_fetch': TierSettings(timeout_s=15.0),
    'rendered_fetch': TierSettings(timeout_s=30.0, max_attempts=2, base_delay_ms=2000),
    'unblocked_fetch': TierSettings(timeout_s=45.0, max_attempts=1),
    'ai_fallback': TierSettings(timeout_s=30.0, max_attempts=2),
}


@dataclass
class EngineSettings:
    """
    Runtime settings for the extraction engine.

    Thresholds and budgets come from config/engine.yaml; endpoints and
    credentials come from the environment (populated from .env by the
    entry-point scripts).
    """
    tiers: Dict[str, TierSettings] = field(
        default_factory=lambda: {k: TierSettings(**vars(v)) for k, v in DEFAULT_TIER_SETTINGS.items()}
    )
    breaker: BreakerSettings = field(default_factory=BreakerSettings)
    overall_deadline_s: Optional[float] = None

    render_service_url: str = ""
    unblock_service_url: str = ""
    render_service_token: str = ""
    render_wait_ms: int = 2000

    openai_api_key: str = ""
    openai_base_url: str = ""
    ai_model: str = "gpt-4o-mini"
    ai_max_chars: int = 12000

    max_workers: int = 4
    batch_delay_s: float = 0.0

    def tier(self, name: str) -> TierSettings:
        """Return settings for a tier, falling back to defaults."""
        if name in self.tiers:
            return self.tiers[name]
        return DEFAULT_TIER_SETTINGS.get(name, TierSettings())


def _validate_retryable(tier: str, values: Any) -> Tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    known = {c.value for c in ErrorCategory}
    for value in values or ():
        if value not in known:
            raise ValueError(
                f"Unknown error category '{value}' in retryable for tier '{tier}' "
                f"(expected one of: {', '.join(sorted(known))})"
            )
    return tuple(values or ())


def _build_tier_settings(raw: Mapping[str, Any]) -> Dict[str, TierSettings]:
    tiers = {k: TierSettings(**vars(v)) for k, v in DEFAULT_TIER_SETTINGS.items()}
    for name, values in (raw or {}).items():
        base = vars(tiers.get(name, TierSettings())).copy()
        for key, value in (values or {}).items():
            if key not in base:
                raise ValueError(f"Unknown tier setting '{key}' for tier '{name}'")
            if key == 'retryable':
                value = _validate_retryable(name, value)
            base[key] = value
        tiers[name] = TierSettings(**base)
    return tiers


def load_engine_settings(
    filename: str = 'engine.yaml',
    env: Optional[Mapping[str, str]] = None,
) -> EngineSettings:
    """
    Load engine settings from YAML and the environment.

    A missing config file yields the built-in defaults.

    Args:
        filename: Engine config file name inside the config directory
        env: Environment mapping (defaults to os.environ)

    Returns:
        EngineSettings instance
    """
    if env is None:
        env = os.environ

    try:
        raw = load_config(filename)
    except FileNotFoundError:
        logger.debug("No %s found, using default engine settings", filename)
        raw = {}

    breaker_raw = raw.get('breaker', {}) or {}
    ai_raw = raw.get('ai', {}) or {}
    render_raw = raw.get('render', {}) or {}
    batch_raw = raw.get('batch', {}) or {}

    settings = EngineSettings(
        tiers=_build_tier_settings(raw.get('tiers', {})),
        breaker=BreakerSettings(**breaker_raw),
        overall_deadline_s=raw.get('overall_deadline_s'),
        render_service_url=env.get('RENDER_SERVICE_URL', render_raw.get('url', '')),
        unblock_service_url=env.get('UNBLOCK_SERVICE_URL', render_raw.get('unblock_url', '')),
        render_service_token=env.get('RENDER_SERVICE_TOKEN', ''),
        render_wait_ms=render_raw.get('wait_ms', 2000),
        openai_api_key=env.get('OPENAI_API_KEY', ''),
        openai_base_url=env.get('OPENAI_BASE_URL', ai_raw.get('base_url', '')),
        ai_model=env.get('AI_MODEL', ai_raw.get('model', 'gpt-4o-mini')),
        ai_max_chars=ai_raw.get('max_chars', 12000),
        max_workers=batch_raw.get('max_workers', 4),
        batch_delay_s=batch_raw.get('delay_s', 0.0),
    )
    return settings
