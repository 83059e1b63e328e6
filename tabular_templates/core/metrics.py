from __future__ import annotations

from prometheus_client import Counter

CACHE_POPULATIONS = Counter(
    "templates_cache_populations_total",
    "Template cache population passes",
    ["source"],
)

PACKAGES_LOADED = Counter(
    "templates_packages_loaded_total",
    "Template packages loaded from disk",
)

WORKFLOWS = Counter(
    "templates_workflows_total",
    "Template workflows run against model sessions",
    ["workflow", "outcome"],
)

DIAGNOSTICS_REPORTS = Counter(
    "templates_diagnostics_reports_total",
    "Errors reported to diagnostics",
    ["kind"],
)
