"""Factory helpers for constructing stores, advisors, and services from configuration."""
from __future__ import annotations

import importlib
import logging
from concurrent.futures import Executor
from typing import Any, Dict, Optional

from .advisory.base import AdvisoryService
from .config import ConfigurationError, resolve_timezone
from .data import LeadDataService
from .staff import StaffDirectory
from .stores.base import LeadStore

LOGGER = logging.getLogger(__name__)


def _load_class(path: str):
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        raise ConfigurationError(f"Invalid class path '{path}'")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module '{module_name}' does not define '{attr}'") from exc


def _instantiate(section_name: str, section: Dict[str, Any]):
    class_path = section.get("class")
    if not class_path:
        raise ConfigurationError(f"'{section_name}' configuration missing required 'class' field")
    options = section.get("options", {}) or {}
    cls = _load_class(class_path)
    try:
        return cls(**options)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Could not build {section_name} '{class_path}': {exc}") from exc


def build_store(config: Dict[str, Any]) -> LeadStore:
    """Instantiate the lead store described by the ``store`` section."""

    section = config.get("store")
    if not section:
        raise ConfigurationError(
            "No lead store configured. Add a 'store' section or set CRM_STORE_URL and CRM_STORE_KEY"
        )
    return _instantiate("store", section)


def build_advisor(config: Dict[str, Any]) -> Optional[AdvisoryService]:
    """Instantiate the advisory service, or return ``None`` when none is configured."""

    section = config.get("advisory")
    if not section or not section.get("enabled", True):
        LOGGER.debug("Advisory service disabled")
        return None
    return _instantiate("advisory", section)


def build_staff_directory(config: Dict[str, Any]) -> StaffDirectory:
    staff = config.get("staff", {}) or {}
    aliases = staff.get("aliases", {}) or {}
    if not isinstance(aliases, dict):
        raise ConfigurationError("'staff.aliases' must be a mapping of name variants to canonical names")
    return StaffDirectory(aliases)


def build_service(
    config: Dict[str, Any],
    *,
    store: Optional[LeadStore] = None,
    executor: Optional[Executor] = None,
) -> LeadDataService:
    """Wire a :class:`LeadDataService` from configuration."""

    return LeadDataService(
        store if store is not None else build_store(config),
        advisor=build_advisor(config),
        executor=executor,
        resync_on_write_failure=bool(config.get("resync_on_write_failure", True)),
        tz=resolve_timezone(config),
    )
