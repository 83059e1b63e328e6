"""
Administrative policies that gate template features.

Policy file format (YAML or JSON):
    BuiltInTemplatesEnabled: false

A key that is present in the file is FORCED; an absent key is NOT_CONFIGURED
and the built-in default applies.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

_log = logging.getLogger("tabular_templates.policy")

BUILT_IN_TEMPLATES_ENABLED_KEY = "BuiltInTemplatesEnabled"


class PolicyStatus(str, Enum):
    NOT_CONFIGURED = "NOT_CONFIGURED"
    FORCED = "FORCED"


@dataclass(frozen=True)
class TemplatePolicies:
    built_in_templates_enabled: bool = True
    built_in_templates_enabled_policy: PolicyStatus = PolicyStatus.NOT_CONFIGURED

    def built_in_templates_allowed(self) -> bool:
        if self.built_in_templates_enabled_policy == PolicyStatus.FORCED:
            return self.built_in_templates_enabled
        return True


PolicyProvider = Callable[[], TemplatePolicies]


def _parse_policies(raw: Dict[str, Any]) -> TemplatePolicies:
    if BUILT_IN_TEMPLATES_ENABLED_KEY not in raw:
        return TemplatePolicies()
    value = raw[BUILT_IN_TEMPLATES_ENABLED_KEY]
    if not isinstance(value, bool):
        _log.warning("Ignoring non-boolean %s=%r", BUILT_IN_TEMPLATES_ENABLED_KEY, value)
        return TemplatePolicies()
    return TemplatePolicies(
        built_in_templates_enabled=value,
        built_in_templates_enabled_policy=PolicyStatus.FORCED,
    )


def load_policies(path: Optional[Path]) -> TemplatePolicies:
    """
    Read policies from a YAML or JSON file.

    Missing, unreadable or malformed files yield the defaults.
    """
    if path is None or not path.exists():
        return TemplatePolicies()

    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        _log.warning("Cannot read policy file %s: %s", path, exc)
        return TemplatePolicies()

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            _log.warning("Failed to parse policy file %s as JSON or YAML: %s", path, exc)
            return TemplatePolicies()

    if not isinstance(data, dict):
        _log.warning("Policy file %s must be a mapping, got %s", path, type(data).__name__)
        return TemplatePolicies()

    policies = _parse_policies(data)
    _log.info("Loaded template policies from %s: %s", path, policies)
    return policies


def file_policy_provider(path: Optional[Path]) -> PolicyProvider:
    # re-read on every call so administrators can change the file without a restart
    return lambda: load_policies(path)
