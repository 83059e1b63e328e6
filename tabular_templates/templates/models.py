from __future__ import annotations

from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SUPPORTED_PACKAGE_VERSION = 1

RuleKind = Literal["calendar", "holidays", "measures"]

CALENDAR_ATTRIBUTES = {
    "date",
    "year",
    "quarter",
    "month_number",
    "month_name",
    "year_month",
    "day_of_month",
    "day_of_week",
    "day_name",
    "is_weekend",
}

HOLIDAY_ATTRIBUTES = {"date", "name", "country"}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ColumnDefinition(_Frozen):
    name: str
    attribute: str
    data_type: str = "string"


class MeasureDefinition(_Frozen):
    name: str
    # "{date_table}" is replaced with the resolved date table name
    expression: str
    format_string: Optional[str] = None


class HolidayDefinition(_Frozen):
    country: str
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)
    name: str


class TemplateRule(_Frozen):
    kind: RuleKind
    table: str
    annotation: Optional[str] = None
    columns: Tuple[ColumnDefinition, ...] = ()
    measures: Tuple[MeasureDefinition, ...] = ()
    holidays: Tuple[HolidayDefinition, ...] = ()

    @model_validator(mode="after")
    def _check_columns(self) -> "TemplateRule":
        allowed = {"calendar": CALENDAR_ATTRIBUTES, "holidays": HOLIDAY_ATTRIBUTES}.get(self.kind)
        if allowed is None:
            if self.columns:
                raise ValueError("measures rules cannot declare columns")
            return self
        unknown = sorted({c.attribute for c in self.columns} - allowed)
        if unknown:
            raise ValueError(f"unknown {self.kind} attributes: {', '.join(unknown)}")
        return self


class PackageConfig(_Frozen):
    date_table_name: Optional[str] = None
    holidays_table_name: Optional[str] = None
    first_year: int = 2020
    last_year: int = 2025
    holidays_country: Optional[str] = None

    @model_validator(mode="after")
    def _check_years(self) -> "PackageConfig":
        if self.first_year > self.last_year:
            raise ValueError(f"first_year {self.first_year} is after last_year {self.last_year}")
        return self


class Package(_Frozen):
    name: str
    description: str = ""
    version: int = SUPPORTED_PACKAGE_VERSION
    config: PackageConfig = Field(default_factory=PackageConfig)
    templates: Tuple[TemplateRule, ...] = ()
    source: Optional[str] = None

    @field_validator("version")
    @classmethod
    def _supported_version(cls, v: int) -> int:
        if v != SUPPORTED_PACKAGE_VERSION:
            raise ValueError(f"unsupported package version {v} (supported: {SUPPORTED_PACKAGE_VERSION})")
        return v

    def with_config(self, **overrides) -> "Package":
        """Return a copy parameterised with `overrides`; None values keep the package default."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if not values:
            return self
        config = PackageConfig.model_validate(self.config.model_dump() | values)
        return self.model_copy(update={"config": config})
