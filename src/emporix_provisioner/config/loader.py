"""YAML configuration file loader."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import dotenv_values
from pydantic import ValidationError
from ruamel.yaml import YAML

from emporix_provisioner.config.schema import Config
from emporix_provisioner.engine.policy import identity_of

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from emporix_provisioner.resources.base import Resource


class ConfigError(Exception):
    """Raised for configuration loading / validation errors."""


# Field name → environment variable.
_PROVIDER_ENV_MAP: dict[str, str] = {
    "tenant": "EMPORIX_TENANT",
    "api_url": "EMPORIX_API_URL",
    "access_token": "EMPORIX_ACCESS_TOKEN",
    "client_id": "EMPORIX_CLIENT_ID",
    "client_secret": "EMPORIX_CLIENT_SECRET",
    "scope": "EMPORIX_SCOPE",
    "timeout": "EMPORIX_TIMEOUT",
}


def _resolve_provider(raw_provider: dict[str, Any], config_dir: Path) -> dict[str, Any]:
    """Resolve provider fields from YAML, env vars, and ``.env`` file.

    Priority (highest wins): YAML value > env var > ``.env`` file.
    """
    env_file = config_dir / ".env"
    dotenv_vals = dotenv_values(env_file, encoding="utf-8-sig") if env_file.is_file() else {}

    unknown = sorted(set(raw_provider) - set(_PROVIDER_ENV_MAP))
    if unknown:
        raise ConfigError(f"Unknown provider field(s): {', '.join(unknown)}")

    resolved: dict[str, Any] = {}
    for field, env_key in _PROVIDER_ENV_MAP.items():
        val = raw_provider.get(field)
        if val is None:
            val = os.environ.get(env_key)
        if val is None:
            val = dotenv_vals.get(env_key)
        if val is not None:
            resolved[field] = val

    return resolved


def _validate_unique(resources: list[Resource]) -> list[str]:
    """Check that labels and identities are unique within each resource kind."""
    labels: dict[str, dict[str, str]] = {}  # resource_type → {label: first_address}
    identities: dict[str, dict[tuple[Any, ...], str]] = {}
    errors: list[str] = []
    for r in resources:
        seen = labels.setdefault(r.resource_type, {})
        if r.label in seen:
            errors.append(f"Duplicate {r.resource_type} label '{r.label}'")
        else:
            seen[r.label] = r.address

        identity = tuple(identity_of(r.kind, r.desired_attributes()).values())
        seen_ids = identities.setdefault(r.resource_type, {})
        if identity in seen_ids:
            errors.append(
                f"Duplicate {r.resource_type} identity '{'/'.join(map(str, identity))}': "
                f"found in both {seen_ids[identity]} and {r.address}"
            )
        else:
            seen_ids[identity] = r.address
    return errors


def load_config(path: Path | str) -> Config:
    """Load a YAML configuration file and return a ``Config`` object.

    Raises:
        ConfigError: On YAML parse errors, missing sections, or validation failures.
    """
    path = Path(path)

    try:
        raw = YAML(typ="safe").load(path)
    except Exception as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    try:
        raw["provider"] = _resolve_provider(raw.get("provider") or {}, path.parent)
        config = Config.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc

    config.config_dir = path.parent
    if not config.state_path.is_absolute():
        config.state_path = config.config_dir / config.state_path

    errors = _validate_unique(config.resources)
    if errors:
        raise ConfigError("\n".join(errors))

    logger.info("Loaded config from %s (%d resources)", path, len(config.resources))
    return config
