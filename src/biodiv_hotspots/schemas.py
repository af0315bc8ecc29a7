"""
Table contracts for hotspot inputs and results.

Grid cells, observations and accepted species are checked (columns, dtypes,
NA rules, uniqueness) before any richness is computed, so a malformed table
is rejected up front. The result table is checked once more before it is
returned or written.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Set

import pandas as pd


class SchemaError(Exception):
    """Raised when a table does not match its schema."""
    pass


# =============================================================================
# Column names
# =============================================================================

GRIDCELL_COL = "gridcell"
X_COL = "x"
Y_COL = "y"
SPECIES_COL = "species"
GROUP_COL = "group"

BASE_RESULT_COLUMNS = [GRIDCELL_COL, X_COL, Y_COL]


def hotspot_col(group: str) -> str:
    return f"hotspot_{group}"


def subtop_col(group: str) -> str:
    return f"subtop_{group}"


def hotspot_id_col(group: str) -> str:
    return f"hotspot_id_{group}"


def group_columns(group: str, with_subtop: bool) -> List[str]:
    """Richness, center flag, [subtop flag,] hotspot id: the columns of one group."""
    cols = [group, hotspot_col(group)]
    if with_subtop:
        cols.append(subtop_col(group))
    cols.append(hotspot_id_col(group))
    return cols


# =============================================================================
# Contracts
# =============================================================================

@dataclass
class ColumnSpec:
    """
    Rules for one column.

    dtype is one of "integer", "float", "bool" or None (any). Range checks
    apply to numeric columns only; NA values are skipped by every check
    except `nullable`.
    """
    name: str
    dtype: Optional[str] = None
    nullable: bool = True
    unique: bool = False
    allowed_values: Optional[Set[Any]] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None


@dataclass
class Schema:
    """Named set of column rules plus a minimum row count."""
    name: str
    columns: List[ColumnSpec]
    required_columns: List[str] = field(default_factory=list)
    min_rows: int = 0

    def __post_init__(self):
        # non-nullable columns are required unless stated otherwise
        if not self.required_columns:
            self.required_columns = [spec.name for spec in self.columns if not spec.nullable]


GRID_SCHEMA = Schema(
    name="gridcells",
    columns=[
        ColumnSpec(GRIDCELL_COL, dtype="integer", nullable=False, unique=True, min_value=0),
    ],
    min_rows=1,
)

OBSERVATIONS_SCHEMA = Schema(
    name="observations",
    columns=[
        ColumnSpec(SPECIES_COL, nullable=False),
        ColumnSpec(GRIDCELL_COL, dtype="integer", nullable=False, min_value=0),
    ],
)

SPECIES_SCHEMA = Schema(
    name="species",
    columns=[
        ColumnSpec(SPECIES_COL, nullable=False),
        ColumnSpec(GROUP_COL, nullable=False),
    ],
    min_rows=1,
)


def result_schema(groups: Iterable[str], with_subtop: bool, return_tf: bool = True) -> Schema:
    """Contract of a hotspot result table for the given groups."""
    if return_tf:
        flag = dict(dtype="bool")
    else:
        flag = dict(dtype="integer", allowed_values={0, 1})

    columns = [
        ColumnSpec(GRIDCELL_COL, dtype="integer", nullable=False, unique=True, min_value=0),
        ColumnSpec(X_COL, dtype="integer", nullable=False, min_value=0),
        ColumnSpec(Y_COL, dtype="integer", nullable=False, min_value=0, max_value=999),
    ]
    for group in groups:
        columns.append(ColumnSpec(group, dtype="integer", nullable=False, min_value=0))
        columns.append(ColumnSpec(hotspot_col(group), nullable=False, **flag))
        if with_subtop:
            columns.append(ColumnSpec(subtop_col(group), nullable=False, **flag))
        columns.append(ColumnSpec(hotspot_id_col(group), dtype="integer", nullable=False, min_value=0))

    return Schema(name="hotspot_status", columns=columns, min_rows=1)


# =============================================================================
# Validation
# =============================================================================

_DTYPE_CHECKS = {
    "integer": lambda s: pd.api.types.is_integer_dtype(s) and not pd.api.types.is_bool_dtype(s),
    "float": pd.api.types.is_float_dtype,
    "bool": pd.api.types.is_bool_dtype,
}


def _is_numeric(col: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(col) and not pd.api.types.is_bool_dtype(col)


def validate_column(df: pd.DataFrame, spec: ColumnSpec) -> List[str]:
    """Problems found in one column of df; empty if it follows spec."""
    name = spec.name
    if name not in df.columns:
        return [f"Missing column: {name}"]

    col = df[name]
    problems = []

    if spec.dtype is not None and not _DTYPE_CHECKS[spec.dtype](col):
        problems.append(f"Column {name}: expected {spec.dtype}, got {col.dtype}")

    n_na = int(col.isna().sum())
    if n_na and not spec.nullable:
        problems.append(f"Column {name}: {n_na} NA values not allowed")

    if spec.unique:
        n_dup = int(col.duplicated().sum())
        if n_dup:
            problems.append(f"Column {name}: {n_dup} duplicate values not allowed")

    if spec.allowed_values is not None:
        bad = col[col.notna() & ~col.isin(spec.allowed_values)]
        if len(bad):
            problems.append(f"Column {name}: invalid values {list(bad.unique()[:5])}")

    if _is_numeric(col):
        values = col.dropna()
        if spec.min_value is not None and (values < spec.min_value).any():
            problems.append(f"Column {name}: values below min {spec.min_value}")
        if spec.max_value is not None and (values > spec.max_value).any():
            problems.append(f"Column {name}: values above max {spec.max_value}")

    return problems


def validate_schema(
    df: pd.DataFrame,
    schema: Schema,
    context: str = "",
    raise_on_error: bool = True,
) -> List[str]:
    """
    Check df against schema.

    Args:
        df: Table to check
        schema: Contract to check against
        context: Short label for messages, e.g. "grid cells"
        raise_on_error: Raise on the first failing table instead of returning

    Returns:
        Problems found (empty if df is valid)

    Raises:
        SchemaError: If df is not a DataFrame, or raise_on_error is set and
            problems were found
    """
    if not isinstance(df, pd.DataFrame):
        raise SchemaError(f"'{schema.name}' must be a DataFrame, got {type(df).__name__}")

    where = f" ({context})" if context else ""
    problems = []

    if len(df) < schema.min_rows:
        problems.append(f"Expected at least {schema.min_rows} rows, got {len(df)}{where}")

    absent = [c for c in schema.required_columns if c not in df.columns]
    if absent:
        problems.append(f"Missing required columns: {absent}{where}")

    for spec in schema.columns:
        if spec.name not in absent:
            problems.extend(validate_column(df, spec))

    if problems and raise_on_error:
        raise SchemaError(f"'{schema.name}' failed validation{where}:\n  " + "\n  ".join(problems))

    return problems


def validate_group_names(groups: Iterable[str]) -> None:
    """
    Reject group names whose result columns would collide.

    Raises:
        SchemaError: For an empty name, a base column name, or a name whose
            derived columns clash with another group's
    """
    seen = set(BASE_RESULT_COLUMNS)
    for group in groups:
        if not isinstance(group, str) or group == "":
            raise SchemaError(f"Group names must be non-empty strings, got {group!r}")
        for col in group_columns(group, with_subtop=True):
            if col in seen:
                raise SchemaError(f"Group '{group}' collides with result column '{col}'")
            seen.add(col)
