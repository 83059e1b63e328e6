"""
Minimal rule engine for template packages.

Each rule runs as one local mutation of the session; cancellation is checked
between rules. Tables and measures created here are tagged with template
annotations so that later runs can recognise, replace and remove them.
"""
from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..core.cancellation import CancelToken, NONE
from ..core.errors import TemplateError
from ..model.tabular import Column, Measure, Table, TabularModel
from .models import Package, TemplateRule

TEMPLATE_ANNOTATION = "TabularTemplates_Template"
TEMPLATE_ANNOTATION_DATES = "Dates"
TEMPLATE_ANNOTATION_HOLIDAYS = "Holidays"
TEMPLATE_TABLE_ANNOTATION = "TabularTemplates_TemplateTable"
TEMPLATE_TABLE_DATE = "Date"
TEMPLATE_TABLE_HOLIDAYS = "Holidays"

_CALENDAR_VALUES: Dict[str, Callable[[date], Any]] = {
    "date": lambda d: d.isoformat(),
    "year": lambda d: d.year,
    "quarter": lambda d: f"Q{(d.month - 1) // 3 + 1}",
    "month_number": lambda d: d.month,
    "month_name": lambda d: calendar.month_name[d.month],
    "year_month": lambda d: f"{d.year}-{d.month:02d}",
    "day_of_month": lambda d: d.day,
    "day_of_week": lambda d: d.isoweekday(),
    "day_name": lambda d: calendar.day_name[d.weekday()],
    "is_weekend": lambda d: d.isoweekday() >= 6,
}


def _days(first_year: int, last_year: int):
    d = date(first_year, 1, 1)
    end = date(last_year, 12, 31)
    while d <= end:
        yield d
        d += timedelta(days=1)


def _is_template_table(table: Table) -> bool:
    return TEMPLATE_TABLE_ANNOTATION in table.annotations


class TemplateEngine:
    def __init__(self, package: Package):
        self.package = package
        self._produced_tables: Set[str] = set()
        self._produced_measures: Set[Tuple[str, str]] = set()

    def _table_name(self, rule: TemplateRule) -> str:
        cfg = self.package.config
        if rule.kind == "calendar":
            return cfg.date_table_name or rule.table
        if rule.kind == "holidays":
            return cfg.holidays_table_name or rule.table
        # measures follow a generated table when it is renamed by config
        for generator in self.package.templates:
            if generator.kind != "measures" and generator.table == rule.table:
                return self._table_name(generator)
        return rule.table

    def date_table_name(self) -> Optional[str]:
        for rule in self.package.templates:
            if rule.kind == "calendar":
                return self._table_name(rule)
        return None

    def apply_templates(self, session: Any, cancel_token: CancelToken = NONE) -> None:
        self._produced_tables = set()
        self._produced_measures = set()

        for rule in self.package.templates:
            cancel_token.raise_if_cancelled()
            session.apply_local_mutation(lambda model, rule=rule: self._apply_rule(model, rule))

        cancel_token.raise_if_cancelled()
        session.apply_local_mutation(self._remove_stale)

    def _apply_rule(self, model: TabularModel, rule: TemplateRule) -> None:
        if rule.kind == "calendar":
            self._replace_table(model, self._build_calendar(rule))
        elif rule.kind == "holidays":
            self._replace_table(model, self._build_holidays(rule))
        else:
            self._add_measures(model, rule)

    def _replace_table(self, model: TabularModel, table: Table) -> None:
        existing = model.find_table(table.name)
        if existing is not None and not _is_template_table(existing):
            raise TemplateError(
                f"table '{table.name}' already exists and is not managed by a template",
                details={"table": table.name, "package": self.package.name},
            )
        model.add_table(table)
        self._produced_tables.add(table.name)

    def _measures(self, rule: TemplateRule, annotation: str) -> List[Measure]:
        date_table = self.date_table_name() or ""
        return [
            Measure(
                name=m.name,
                expression=m.expression.replace("{date_table}", f"'{date_table}'"),
                format_string=m.format_string,
                annotations={TEMPLATE_ANNOTATION: annotation},
            )
            for m in rule.measures
        ]

    def _build_calendar(self, rule: TemplateRule) -> Table:
        cfg = self.package.config
        table = Table(
            name=self._table_name(rule),
            annotations={
                TEMPLATE_ANNOTATION: rule.annotation or TEMPLATE_ANNOTATION_DATES,
                TEMPLATE_TABLE_ANNOTATION: TEMPLATE_TABLE_DATE,
            },
            source={"kind": "calendar", "first_year": cfg.first_year, "last_year": cfg.last_year},
        )
        for c in rule.columns:
            table.add_column(Column(name=c.name, data_type=c.data_type))
        for m in self._measures(rule, rule.annotation or TEMPLATE_ANNOTATION_DATES):
            table.add_measure(m)

        getters = [(c.name, _CALENDAR_VALUES[c.attribute]) for c in rule.columns]
        table.rows = [{name: fn(d) for name, fn in getters} for d in _days(cfg.first_year, cfg.last_year)]
        return table

    def _build_holidays(self, rule: TemplateRule) -> Table:
        cfg = self.package.config
        country = cfg.holidays_country
        table = Table(
            name=self._table_name(rule),
            annotations={
                TEMPLATE_ANNOTATION: rule.annotation or TEMPLATE_ANNOTATION_HOLIDAYS,
                TEMPLATE_TABLE_ANNOTATION: TEMPLATE_TABLE_HOLIDAYS,
            },
            source={
                "kind": "holidays",
                "country": country,
                "first_year": cfg.first_year,
                "last_year": cfg.last_year,
            },
        )
        for c in rule.columns:
            table.add_column(Column(name=c.name, data_type=c.data_type))

        definitions = [h for h in rule.holidays if country is None or h.country == country]
        rows: List[Dict[str, Any]] = []
        for year in range(cfg.first_year, cfg.last_year + 1):
            for h in definitions:
                try:
                    day = date(year, h.month, h.day)
                except ValueError:
                    # e.g. Feb 29 outside leap years
                    continue
                values = {"date": day.isoformat(), "name": h.name, "country": h.country}
                rows.append({c.name: values[c.attribute] for c in rule.columns})
        date_columns = [c.name for c in rule.columns if c.attribute == "date"]
        if date_columns:
            rows.sort(key=lambda r: r[date_columns[0]])
        table.rows = rows
        return table

    def _add_measures(self, model: TabularModel, rule: TemplateRule) -> None:
        table_name = self._table_name(rule)
        target = model.find_table(table_name)
        if target is None:
            raise TemplateError(
                f"package '{self.package.name}' requires table '{table_name}'",
                details={"table": table_name, "package": self.package.name},
            )
        for m in self._measures(rule, rule.annotation or TEMPLATE_ANNOTATION_DATES):
            existing = target.measures.get(m.name)
            if existing is not None and TEMPLATE_ANNOTATION not in existing.annotations:
                raise TemplateError(
                    f"measure '{m.name}' already exists in '{target.name}' and is not managed by a template",
                    details={"table": target.name, "measure": m.name},
                )
            target.add_measure(m)
            self._produced_measures.add((target.name, m.name))

    def _remove_stale(self, model: TabularModel) -> None:
        for name in [n for n, t in model.tables.items() if _is_template_table(t) and n not in self._produced_tables]:
            del model.tables[name]

        for table in model.tables.values():
            if _is_template_table(table):
                continue
            stale = [
                n
                for n, m in table.measures.items()
                if TEMPLATE_ANNOTATION in m.annotations and (table.name, n) not in self._produced_measures
            ]
            for n in stale:
                del table.measures[n]
