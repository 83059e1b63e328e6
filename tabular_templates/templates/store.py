from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError

from ..core.diagnostics import DEFAULT_DIAGNOSTICS, DiagnosticsReporter
from ..core.errors import TemplateError
from ..core.metrics import PACKAGES_LOADED
from ..core.policy import PolicyProvider, TemplatePolicies
from .models import Package

log = logging.getLogger("tabular_templates.store")

PACKAGE_FILE_PATTERN = "*.package.json"


def find_template_files(directory: Path) -> List[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.glob(PACKAGE_FILE_PATTERN) if p.is_file())


def parse_package(path: Path) -> Package:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise TemplateError(f"cannot read package {path}: {exc}", details={"path": str(path)}) from exc
    except json.JSONDecodeError as exc:
        raise TemplateError(f"malformed package {path}: {exc}", details={"path": str(path)}) from exc

    if not isinstance(raw, dict):
        raise TemplateError(f"malformed package {path}: expected a JSON object", details={"path": str(path)})

    try:
        return Package.model_validate({**raw, "source": str(path)})
    except ValidationError as exc:
        raise TemplateError(
            f"unsupported package {path}: {exc.error_count()} validation error(s)",
            details={"path": str(path), "errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


class PackageStore:
    def __init__(
        self,
        *,
        policies: PolicyProvider = TemplatePolicies,
        diagnostics: DiagnosticsReporter = DEFAULT_DIAGNOSTICS,
    ):
        self._policies = policies
        self._diagnostics = diagnostics

    def load_one(self, path: Path) -> Package:
        try:
            package = parse_package(Path(path))
        except TemplateError as exc:
            self._diagnostics.report(exc)
            raise
        PACKAGES_LOADED.inc()
        return package

    def load_all(self, directory: Path) -> List[Package]:
        """
        Load every package found in `directory`.

        Returns [] when built-in templates are disabled by policy. One bad file
        fails the whole call; use load_one per file for best-effort loading.
        """
        if not self._policies().built_in_templates_allowed():
            log.info("Built-in templates disabled by policy; skipping %s", directory)
            return []

        files = find_template_files(Path(directory))
        packages = [self.load_one(p) for p in files]
        log.debug("Loaded %d packages from %s", len(packages), directory)
        return packages
