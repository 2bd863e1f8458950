"""Configuration loading for mcworkshop."""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from mcworkshop.constants import (
    DEFAULT_CREATE_TIMEOUT,
    DEFAULT_DATABASE_ROOT_PASSWORD,
    DEFAULT_LOGIN_USER,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SCRIPT_TIMEOUT,
    GROUP,
)
from mcworkshop.errors import ConfigurationLoadFailure
from mcworkshop.errors_catalog import actionable_error
from mcworkshop.models import ProviderSettings

PROVIDER_PROPERTIES = ("name", "identity", "credential", "location", "image", "hardware")


class ConfigLoader:
    """Loads the YAML configuration file.

    Scalar top-level keys are run options; mapping-valued top-level keys are
    provider sections, one of which is selected by ``provider``.
    """

    SUPPORTED_KEYS = {
        "provider",
        "group",
        "login_user",
        "keys_dir",
        "parallel",
        "verbose",
        "log_file",
        "report_file",
        "script_timeout_seconds",
        "poll_interval_seconds",
        "create_timeout_seconds",
        "allow_positional_binding",
        "database_root_password",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationLoadFailure(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationLoadFailure(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationLoadFailure("Config file must contain a YAML mapping at the root.")

        unknown = sorted(
            str(key)
            for key, value in parsed.items()
            if key not in self.SUPPORTED_KEYS and not isinstance(value, dict)
        )
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigurationLoadFailure(f"Unknown configuration keys: {unknown_list}")

        return parsed


def _positive_seconds(values: Mapping[str, Any], key: str, default: float) -> float:
    value = values.get(key)
    if value is None:
        return float(default)
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationLoadFailure(f"`{key}` must be a number of seconds, got {value!r}.") from exc
    if seconds <= 0:
        raise ConfigurationLoadFailure(f"`{key}` must be greater than zero, got {value!r}.")
    return seconds


def load_provider_settings(values: Mapping[str, Any]) -> ProviderSettings:
    """Builds the immutable provider settings from merged config values."""
    provider = values.get("provider")
    if not provider:
        raise ConfigurationLoadFailure(
            "No provider selected. Set `provider:` in the config file or pass --provider."
        )
    provider = str(provider)

    section = values.get(provider)
    if not isinstance(section, dict):
        raise ConfigurationLoadFailure(
            actionable_error(
                "missing_provider_properties",
                provider=provider,
                properties=", ".join(PROVIDER_PROPERTIES),
            )
        )

    missing = [key for key in PROVIDER_PROPERTIES if section.get(key) in (None, "")]
    if missing:
        raise ConfigurationLoadFailure(
            actionable_error(
                "missing_provider_properties",
                provider=provider,
                properties=", ".join(missing),
            )
        )

    driver_options = section.get("driver_options") or {}
    create_options = section.get("create_options") or {}
    for key, option in (("driver_options", driver_options), ("create_options", create_options)):
        if not isinstance(option, dict):
            raise ConfigurationLoadFailure(f"`{provider}.{key}` must be a mapping.")

    try:
        return ProviderSettings(
            provider=provider,
            name=str(section["name"]),
            identity=str(section["identity"]),
            credential=str(section["credential"]),
            location=str(section["location"]),
            image=str(section["image"]),
            hardware=str(section["hardware"]),
            group=str(values.get("group") or GROUP),
            login_user=str(values.get("login_user") or DEFAULT_LOGIN_USER),
            keys_dir=str(values.get("keys_dir") or "."),
            script_timeout_seconds=_positive_seconds(values, "script_timeout_seconds", DEFAULT_SCRIPT_TIMEOUT),
            poll_interval_seconds=_positive_seconds(values, "poll_interval_seconds", DEFAULT_POLL_INTERVAL),
            create_timeout_seconds=_positive_seconds(values, "create_timeout_seconds", DEFAULT_CREATE_TIMEOUT),
            allow_positional_binding=bool(values.get("allow_positional_binding", True)),
            database_root_password=str(
                values.get("database_root_password") or DEFAULT_DATABASE_ROOT_PASSWORD
            ),
            driver_options=dict(driver_options),
            create_options=dict(create_options),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationLoadFailure(f"Invalid configuration value: {exc}") from exc
