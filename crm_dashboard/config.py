"""Configuration helpers for the dashboard's store and advisory backends."""
from __future__ import annotations

import copy
import json
import logging
import os
from datetime import tzinfo
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dateutil import tz as date_tz

LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CRM_DASHBOARD_CONFIG"

DEFAULT_STORE_CLASS = "crm_dashboard.stores.postgrest.PostgrestLeadStore"
DEFAULT_ADVISORY_CLASS = "crm_dashboard.advisory.gemini.GeminiAdvisor"


class ConfigurationError(RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Configuration file '{file_path}' is not valid JSON: {exc}") from exc
    else:
        import yaml

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Configuration file '{file_path}' is not valid YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping at the top level")
    return data


def apply_environment(config: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return a copy of ``config`` with credentials filled in from the environment.

    ``CRM_STORE_URL``/``CRM_STORE_KEY``/``CRM_STORE_TABLE`` populate the store
    options and ``GEMINI_API_KEY`` the advisory options, without overriding
    values already present in the file.
    """

    env = os.environ if environ is None else environ
    merged: Dict[str, Any] = copy.deepcopy(dict(config))

    store_url = env.get("CRM_STORE_URL")
    store_key = env.get("CRM_STORE_KEY")
    if store_url or "store" in merged:
        store = merged.setdefault("store", {})
        store.setdefault("class", DEFAULT_STORE_CLASS)
        options = store.setdefault("options", {})
        if store["class"] == DEFAULT_STORE_CLASS:
            if store_url:
                options.setdefault("url", store_url)
            if store_key:
                options.setdefault("api_key", store_key)
            if env.get("CRM_STORE_TABLE"):
                options.setdefault("table", env["CRM_STORE_TABLE"])

    gemini_key = env.get("GEMINI_API_KEY")
    if gemini_key or "advisory" in merged:
        advisory = merged.setdefault("advisory", {})
        advisory.setdefault("class", DEFAULT_ADVISORY_CLASS)
        options = advisory.setdefault("options", {})
        if advisory["class"] == DEFAULT_ADVISORY_CLASS and gemini_key:
            options.setdefault("api_key", gemini_key)
    return merged


def load_settings(path: Optional[str | Path] = None, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load the file at ``path`` (or ``$CRM_DASHBOARD_CONFIG``) and apply environment overrides."""

    env = os.environ if environ is None else environ
    config_path = path or env.get(CONFIG_ENV_VAR)
    config: Dict[str, Any] = {}
    if config_path:
        config = load_configuration(config_path)
    else:
        LOGGER.debug("No configuration file given; using environment only")
    return apply_environment(config, env)


def resolve_timezone(config: Mapping[str, Any]) -> Optional[tzinfo]:
    """Return the configured timezone, or ``None`` to use the machine's local zone."""

    name = config.get("timezone")
    if not name:
        return None
    zone = date_tz.gettz(str(name))
    if zone is None:
        raise ConfigurationError(f"Unknown timezone '{name}'")
    return zone
