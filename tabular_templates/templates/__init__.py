from .models import Package, PackageConfig, TemplateRule
from .cache import TemplateCache, get_template_cache
from .store import PackageStore
from .configuration import DateConfiguration

__all__ = [
    "Package",
    "PackageConfig",
    "TemplateRule",
    "TemplateCache",
    "get_template_cache",
    "PackageStore",
    "DateConfiguration",
]
