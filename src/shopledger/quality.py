"""
Data quality checks for normalized store records.

Nothing in the engine is fatal: a record with an unreadable date is skipped,
a missing cost counts as 0, a negative stock level is allowed. This module
collects those conditions into reports the caller can show, so the numbers
are never silently wrong.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

import pandas as pd


@dataclass
class DataQualityIssue:
    """A single data quality issue found in the data."""

    column: str
    issue_type: str  # e.g. "missing", "unparsed_date", "duplicate", "double_count_risk"
    severity: str  # "critical", "warning", "info"
    count: int
    percentage: float
    sample_values: list[Any] = field(default_factory=list)
    description: str = ""


@dataclass
class DataQualityReport:
    """Summary report of data quality for a single record stream."""

    source_name: str
    total_rows: int
    issues: list[DataQualityIssue] = field(default_factory=list)

    @property
    def critical_issues(self) -> list[DataQualityIssue]:
        return [i for i in self.issues if i.severity == "critical"]

    @property
    def warning_issues(self) -> list[DataQualityIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def has_critical_issues(self) -> bool:
        return len(self.critical_issues) > 0

    def issues_of_type(self, issue_type: str) -> list[DataQualityIssue]:
        return [i for i in self.issues if i.issue_type == issue_type]

    def summary(self) -> dict:
        """Return a summary dict for display."""
        return {
            "source": self.source_name,
            "total_rows": self.total_rows,
            "critical": len(self.critical_issues),
            "warnings": len(self.warning_issues),
            "info": len([i for i in self.issues if i.severity == "info"]),
        }


def records_frame(
    records: Iterable[Any], columns: Mapping[str, Callable[[Any], Any]]
) -> pd.DataFrame:
    """
    Build a DataFrame from records, one column per accessor.

    Usage:
        df = records_frame(sales, {"id": lambda s: s.id, "total": lambda s: s.total})
    """
    rows = [{name: getter(record) for name, getter in columns.items()} for record in records]
    return pd.DataFrame(rows, columns=list(columns))


def _percentage(count: int, total: int) -> float:
    return (count / total) * 100 if total else 0.0


class DataQualityChecker:
    """
    Data quality checker for one record stream.

    Checks for common issues:
    - Blank required values
    - Dates that could not be parsed
    - Duplicate keys
    - Invalid values
    - Outliers

    Extend by adding custom checks via add_check().
    """

    def __init__(self, source_name: str, required_columns: Iterable[str] = ()):
        self.source_name = source_name
        self.required_columns = list(required_columns)
        self._checks: list[Callable[[pd.DataFrame], list[DataQualityIssue]]] = []
        self._add_default_checks()

    def _add_default_checks(self):
        """Add default quality checks."""
        self.add_check(self._check_missing_values)

    def add_check(
        self, check_fn: Callable[[pd.DataFrame], list[DataQualityIssue]]
    ) -> "DataQualityChecker":
        """Add a custom check function. Returns self for chaining."""
        self._checks.append(check_fn)
        return self

    def _check_missing_values(self, df: pd.DataFrame) -> list[DataQualityIssue]:
        """Check required columns for nulls and blank strings."""
        issues = []
        for col in self.required_columns:
            if col not in df.columns:
                continue
            values = df[col]
            missing = int((values.isna() | (values.astype(str).str.strip() == "")).sum())
            if missing > 0:
                pct = _percentage(missing, len(df))
                severity = "critical" if pct > 20 else "warning" if pct > 5 else "info"
                issues.append(
                    DataQualityIssue(
                        column=col,
                        issue_type="missing",
                        severity=severity,
                        count=missing,
                        percentage=pct,
                        description=f"{missing:,} missing values ({pct:.1f}%)",
                    )
                )
        return issues

    def check_unparsed_dates(
        self, raw_column: str, parsed_column: str, severity: str = "warning"
    ) -> "DataQualityChecker":
        """Flag rows whose stored date text could not be parsed."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if raw_column not in df.columns or parsed_column not in df.columns:
                return []
            has_text = df[raw_column].fillna("").astype(str).str.strip() != ""
            unparsed = has_text & df[parsed_column].isna()
            count = int(unparsed.sum())
            if count > 0:
                return [
                    DataQualityIssue(
                        column=raw_column,
                        issue_type="unparsed_date",
                        severity=severity,
                        count=count,
                        percentage=_percentage(count, len(df)),
                        sample_values=df.loc[unparsed, raw_column].head(5).tolist(),
                        description=f"{count:,} dates couldn't be parsed; rows are left out of date-filtered totals",
                    )
                ]
            return []

        self._checks.append(check)
        return self

    def check_duplicates(
        self, key_columns: list[str], severity: str = "warning"
    ) -> "DataQualityChecker":
        """Add a duplicate check for the given columns."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if df.empty:
                return []
            dupes_mask = df.duplicated(subset=key_columns, keep=False)
            dupes = int(dupes_mask.sum())
            if dupes > 0:
                return [
                    DataQualityIssue(
                        column=", ".join(key_columns),
                        issue_type="duplicate",
                        severity=severity,
                        count=dupes,
                        percentage=_percentage(dupes, len(df)),
                        sample_values=df.loc[dupes_mask, key_columns[0]].head(5).tolist(),
                        description=f"{dupes:,} duplicate rows on key columns",
                    )
                ]
            return []

        self._checks.append(check)
        return self

    def check_invalid_values(
        self,
        column: str,
        valid_values: set | None = None,
        validator: Callable[[Any], bool] | None = None,
        severity: str = "warning",
        issue_type: str = "invalid_format",
        description: str = "invalid values",
    ) -> "DataQualityChecker":
        """Add a check for invalid values in a column."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if column not in df.columns or df.empty:
                return []

            col_values = df[column].dropna()
            if valid_values:
                if col_values.dtype == object:
                    invalid_mask = ~col_values.astype(str).str.upper().isin(
                        {str(v).upper() for v in valid_values}
                    )
                else:
                    invalid_mask = ~col_values.isin(valid_values)
            elif validator:
                invalid_mask = col_values.apply(lambda x: not validator(x)).astype(bool)
            else:
                return []

            invalid = int(invalid_mask.sum())
            if invalid > 0:
                return [
                    DataQualityIssue(
                        column=column,
                        issue_type=issue_type,
                        severity=severity,
                        count=invalid,
                        percentage=_percentage(invalid, len(df)),
                        sample_values=col_values[invalid_mask].head(5).tolist(),
                        description=f"{invalid:,} {description}",
                    )
                ]
            return []

        self._checks.append(check)
        return self

    def check_outliers(
        self,
        column: str,
        min_val: float | None = None,
        max_val: float | None = None,
        severity: str = "warning",
        sample_column: str | None = None,
    ) -> "DataQualityChecker":
        """Add a check for values outside min/max bounds (inclusive)."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if column not in df.columns:
                return []

            values = pd.to_numeric(df[column], errors="coerce")
            outlier_mask = pd.Series(False, index=values.index)

            if min_val is not None:
                outlier_mask |= values < min_val
            if max_val is not None:
                outlier_mask |= values > max_val

            outliers = int(outlier_mask.sum())
            if outliers > 0:
                samples = df.loc[outlier_mask, sample_column or column].head(5).tolist()
                return [
                    DataQualityIssue(
                        column=column,
                        issue_type="outlier",
                        severity=severity,
                        count=outliers,
                        percentage=_percentage(outliers, len(df)),
                        sample_values=samples,
                        description=f"{outliers:,} values outside expected range",
                    )
                ]
            return []

        self._checks.append(check)
        return self

    def run(self, df: pd.DataFrame) -> DataQualityReport:
        """Run all checks and return a quality report."""
        all_issues = []
        for check_fn in self._checks:
            all_issues.extend(check_fn(df))

        return DataQualityReport(
            source_name=self.source_name, total_rows=len(df), issues=all_issues
        )
