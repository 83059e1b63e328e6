from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ValidationError

from ..core.errors import TemplateError
from ..model.tabular import TabularModel
from .models import Package

if TYPE_CHECKING:
    from .store import PackageStore

CONFIGURATION_ANNOTATION = "TabularTemplates_Configuration"

DEFAULT_TEMPLATE_URI = "Standard.package.json"


class DateConfiguration(BaseModel):
    """Per-model choice of template package and its parameters."""

    # file name inside the template cache, or an absolute path
    template_uri: str = DEFAULT_TEMPLATE_URI

    first_year: Optional[int] = None
    last_year: Optional[int] = None
    holidays_country: Optional[str] = None
    date_table_name: Optional[str] = None
    holidays_table_name: Optional[str] = None

    def package_path(self, cache_dir: Path) -> Path:
        p = Path(self.template_uri)
        return p if p.is_absolute() else cache_dir / p

    def load_package(self, store: "PackageStore", cache_dir: Path) -> Package:
        package = store.load_one(self.package_path(cache_dir))
        try:
            return package.with_config(
                first_year=self.first_year,
                last_year=self.last_year,
                holidays_country=self.holidays_country,
                date_table_name=self.date_table_name,
                holidays_table_name=self.holidays_table_name,
            )
        except ValidationError as exc:
            raise TemplateError(
                f"configuration does not fit package '{package.name}': {exc.error_count()} validation error(s)",
                details={"package": package.name, "template_uri": self.template_uri},
            ) from exc

    def serialize_to(self, session: Any) -> None:
        payload = self.model_dump_json(exclude_none=True)

        def _write(model: TabularModel) -> None:
            model.annotations[CONFIGURATION_ANNOTATION] = payload

        session.apply_local_mutation(_write)

    @classmethod
    def read_from(cls, model: TabularModel) -> Optional["DateConfiguration"]:
        raw = model.annotations.get(CONFIGURATION_ANNOTATION)
        if not raw:
            return None
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise TemplateError(
                f"stored template configuration of model '{model.name}' is malformed",
                details={"model": model.name},
            ) from exc
