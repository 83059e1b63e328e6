from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from ..core.diagnostics import DEFAULT_DIAGNOSTICS, DiagnosticsReporter
from ..core.policy import file_policy_provider
from ..core.settings import TemplateSettings
from ..engine.change_engine import ChangeEngine
from ..model.session import ModelCatalog
from ..templates.cache import TemplateCache, get_template_cache
from ..templates.store import PackageStore


@dataclass
class TemplateServices:
    settings: TemplateSettings
    cache: TemplateCache
    store: PackageStore
    catalog: ModelCatalog = field(default_factory=ModelCatalog)
    diagnostics: DiagnosticsReporter = DEFAULT_DIAGNOSTICS

    @classmethod
    def from_settings(cls, settings: TemplateSettings) -> "TemplateServices":
        return cls(
            settings=settings,
            cache=get_template_cache(settings),
            store=PackageStore(policies=file_policy_provider(settings.policy_file)),
        )

    def change_engine(self) -> ChangeEngine:
        # one engine per request: engines track the state of a single session
        return ChangeEngine(
            store=self.store,
            cache=self.cache,
            diagnostics=self.diagnostics,
            rollback_on_save_failure=self.settings.rollback_on_save_failure,
        )


_SERVICES: Optional[TemplateServices] = None
_SERVICES_LOCK = threading.Lock()


def get_services() -> TemplateServices:
    global _SERVICES
    with _SERVICES_LOCK:
        if _SERVICES is None:
            _SERVICES = TemplateServices.from_settings(TemplateSettings.from_env())
        return _SERVICES
