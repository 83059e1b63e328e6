from __future__ import annotations

import logging
import shutil
import threading
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Tuple

from ..core.diagnostics import DEFAULT_DIAGNOSTICS, DiagnosticsReporter
from ..core.errors import CacheIOError
from ..core.metrics import CACHE_POPULATIONS
from ..core.settings import TemplateSettings

log = logging.getLogger("tabular_templates.cache")

BUILTIN_TEMPLATES_DIR = Path(__file__).resolve().parent / "builtin"

Resource = Tuple[str, bytes]
ResourceProvider = Callable[[], Iterable[Resource]]


def builtin_resources(directory: Path = BUILTIN_TEMPLATES_DIR) -> Iterator[Resource]:
    """Template files shipped with the package, named by file name."""
    for p in sorted(directory.iterdir()):
        if p.is_file() and p.suffix == ".json":
            yield p.name, p.read_bytes()


class TemplateCache:
    """
    On-disk cache of template packages, rebuilt once per instance.

    Source precedence:
      1) user override directory, if it exists (copied file-for-file, no merge)
      2) built-in resources
    """

    def __init__(
        self,
        *,
        cache_path: Path,
        user_path: Path,
        resources: ResourceProvider = builtin_resources,
        diagnostics: DiagnosticsReporter = DEFAULT_DIAGNOSTICS,
    ):
        self.cache_path = cache_path
        self.user_path = user_path
        self._resources = resources
        self._diagnostics = diagnostics
        self._lock = threading.Lock()
        self._initialized = False
        self.population_count = 0

    @classmethod
    def from_settings(cls, settings: TemplateSettings, **kwargs) -> "TemplateCache":
        return cls(cache_path=settings.cache_path, user_path=settings.user_path, **kwargs)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def ensure_initialized(self) -> Path:
        # unlocked fast path; the flag only flips after a complete population
        if self._initialized:
            return self.cache_path

        with self._lock:
            if not self._initialized:
                try:
                    source = self._populate()
                except OSError as exc:
                    err = CacheIOError(
                        f"failed to populate template cache at {self.cache_path}: {exc}",
                        details={"cache_path": str(self.cache_path)},
                    )
                    self._diagnostics.report(err)
                    raise err from exc

                self.population_count += 1
                self._initialized = True
                CACHE_POPULATIONS.labels(source=source).inc()

        return self.cache_path

    def _populate(self) -> str:
        if self.cache_path.exists():
            shutil.rmtree(self.cache_path)
        self.cache_path.mkdir(parents=True)

        if self.user_path.is_dir():
            # debug/test escape hatch: replaces the built-in set entirely
            n = 0
            for user_file in sorted(self.user_path.iterdir()):
                if not user_file.is_file():
                    continue
                shutil.copyfile(user_file, self.cache_path / user_file.name)
                n += 1
            log.info("Template cache populated from %s (%d files)", self.user_path, n)
            return "user"

        n = 0
        for name, content in self._resources():
            (self.cache_path / Path(name).name).write_bytes(content)
            n += 1
        log.info("Template cache populated from built-in templates (%d files) at %s", n, self.cache_path)
        return "builtin"


_DEFAULT_CACHE: Optional[TemplateCache] = None
_DEFAULT_CACHE_LOCK = threading.Lock()


def get_template_cache(settings: Optional[TemplateSettings] = None) -> TemplateCache:
    """Process-wide cache for the given settings; rebuilt when the paths change."""
    global _DEFAULT_CACHE
    settings = settings or TemplateSettings.from_env()
    with _DEFAULT_CACHE_LOCK:
        if (
            _DEFAULT_CACHE is None
            or _DEFAULT_CACHE.cache_path != settings.cache_path
            or _DEFAULT_CACHE.user_path != settings.user_path
        ):
            _DEFAULT_CACHE = TemplateCache.from_settings(settings)
        return _DEFAULT_CACHE
