from __future__ import annotations

import math
from numbers import Real
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import InvalidColumnError, MissingValueError

Cell = float | int | str | None


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_missing(value: Any) -> bool:
    return value is None or (_is_number(value) and not math.isfinite(float(value)))


def _check_same_columns(rows: Sequence[Mapping[str, Any]]) -> None:
    if not rows:
        return
    expected = set(rows[0])
    for index, row in enumerate(rows[1:], start=1):
        if set(row) != expected:
            missing = sorted(expected - set(row))
            extra = sorted(set(row) - expected)
            raise InvalidColumnError(
                f"Observation {index} has inconsistent columns "
                f"(missing={missing}, extra={extra})"
            )


class ObservationTable(BaseModel):
    """Ordered observations sharing one fixed set of columns.

    Each row maps a column name to a number, a categorical label or a
    missing value (``None`` or NaN). The table itself is never mutated by
    the clustering operations; they project it into a :class:`NumericTable`.
    """

    rows: list[dict[str, Any]] = Field(default_factory=list, description="Observations in input order")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_same_columns(self) -> "ObservationTable":
        _check_same_columns(self.rows)
        return self

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Cell]]) -> "ObservationTable":
        """Build a table from row mappings.

        Raises :class:`InvalidColumnError` directly when rows disagree on
        their columns; constructing the model from ``rows=`` reports the
        same problem wrapped in a pydantic ``ValidationError``.
        """
        rows = [dict(r) for r in records]
        _check_same_columns(rows)
        return cls(rows=rows)

    @classmethod
    def from_columns(cls, data: Mapping[str, Sequence[Cell]]) -> "ObservationTable":
        """Build a table from column-oriented data of equal lengths."""
        lengths = {name: len(values) for name, values in data.items()}
        if len(set(lengths.values())) > 1:
            raise InvalidColumnError(f"Columns have different lengths: {lengths}")

        n_rows = next(iter(lengths.values()), 0)
        rows = [{name: data[name][i] for name in data} for i in range(n_rows)]
        return cls(rows=rows)

    # ------------------------------------------------------------------
    # Basic views
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def columns(self) -> list[str]:
        """Column names in the order of the first observation."""
        if not self.rows:
            return []
        return list(self.rows[0])

    @property
    def numeric_columns(self) -> list[str]:
        """Columns whose present values are all real numbers."""
        numeric: list[str] = []
        for name in self.columns:
            present = [v for v in self.column(name) if v is not None]
            if present and all(_is_number(v) for v in present):
                numeric.append(name)
        return numeric

    def column(self, name: str) -> list[Any]:
        if self.rows and name not in self.rows[0]:
            raise InvalidColumnError(f"Unknown column: {name!r}")
        return [row[name] for row in self.rows]


class NumericTable(BaseModel):
    """Finite ``(n_observations, n_columns)`` projection of a table."""

    columns: list[str] = Field(description="Selected numeric column names")
    values: np.ndarray = Field(description="Observation values, one row per observation")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("values")
    @classmethod
    def _as_2d_float(cls, values: np.ndarray) -> np.ndarray:
        arr = np.array(values, dtype=float)
        if arr.ndim != 2:
            raise ValueError(f"Expected a 2D array, got shape {arr.shape}")
        if not np.all(np.isfinite(arr)):
            raise MissingValueError("Numeric table contains missing or non-finite values")
        arr.setflags(write=False)
        return arr

    @model_validator(mode="after")
    def _check_width(self) -> "NumericTable":
        if self.values.shape[1] != len(self.columns):
            raise ValueError(
                f"{len(self.columns)} column names for {self.values.shape[1]} value columns"
            )
        return self

    @classmethod
    def from_array(cls, values: Any, columns: Sequence[str] | None = None) -> "NumericTable":
        arr = np.asarray(values, dtype=float)
        if arr.ndim == 1:
            arr = arr.reshape(-1, 1)
        if not np.all(np.isfinite(arr)):
            raise MissingValueError("Numeric input contains missing or non-finite values")
        if columns is None:
            columns = [f"x{i}" for i in range(arr.shape[1] if arr.ndim == 2 else 0)]
        return cls(columns=list(columns), values=arr)

    @property
    def n_observations(self) -> int:
        return int(self.values.shape[0])

    @property
    def dimensions(self) -> int:
        return int(self.values.shape[1])

    def as_numpy(self) -> np.ndarray:
        """Return the values as a float array (read-only view)."""
        return self.values

    def standardized(self) -> "NumericTable":
        """Return a copy with each column scaled to zero mean, unit sample std.

        Constant columns are centred but left unscaled (all zeros).
        """
        x = self.values
        if x.shape[0] == 0:
            return self
        mean = x.mean(axis=0)
        std = x.std(axis=0, ddof=1) if x.shape[0] > 1 else np.zeros(x.shape[1])
        std = np.where(std > 0.0, std, 1.0)
        return NumericTable(columns=self.columns, values=(x - mean) / std)


class DistanceMatrix(BaseModel):
    """Symmetric matrix of pairwise Euclidean distances."""

    values: np.ndarray = Field(description="Square matrix of pairwise distances")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("values")
    @classmethod
    def _check_distances(cls, values: np.ndarray) -> np.ndarray:
        arr = np.array(values, dtype=float)
        if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
            raise ValueError(f"Distance matrix must be square, got shape {arr.shape}")
        if not np.all(np.isfinite(arr)):
            raise ValueError("Distance matrix contains non-finite entries")
        if np.any(arr < 0.0):
            raise ValueError("Distance matrix contains negative entries")
        if not np.allclose(arr, arr.T):
            raise ValueError("Distance matrix is not symmetric")
        if np.any(np.diag(arr) != 0.0):
            raise ValueError("Distance matrix has a non-zero diagonal")
        arr.setflags(write=False)
        return arr

    @property
    def size(self) -> int:
        """Number of observations."""
        return int(self.values.shape[0])

    def as_numpy(self) -> np.ndarray:
        return self.values

    def distance(self, i: int, j: int) -> float:
        return float(self.values[i, j])

    def neighbors(self, index: int, top_k: int = 10) -> list[tuple[int, float]]:
        """Return the ``top_k`` closest observations to ``index``.

        The result is a list of ``(observation_index, distance)`` pairs,
        nearest first, excluding ``index`` itself.
        """
        if top_k <= 0:
            return []

        n = self.size
        if index < 0 or index >= n:
            raise IndexError(f"Index {index} is out of range for {n} observations")

        row = self.values[index]
        indices = np.arange(n)
        mask = indices != index
        indices = indices[mask]
        values = row[mask]

        order = np.argsort(values, kind="stable")[:top_k]
        return [(int(indices[i]), float(values[i])) for i in order]


def select_numeric(table: ObservationTable, columns: Sequence[str]) -> NumericTable:
    """Project ``table`` onto ``columns``.

    Raises:
        InvalidColumnError: a column is absent, repeated, or holds a
            non-numeric value.
        MissingValueError: a selected cell is missing or not finite.
    """
    columns = list(columns)
    if not columns:
        raise InvalidColumnError("At least one numeric column must be selected")
    if len(set(columns)) != len(columns):
        raise InvalidColumnError(f"Duplicate columns requested: {columns}")

    available = set(table.columns)
    for name in columns:
        if table.rows and name not in available:
            raise InvalidColumnError(f"Unknown column: {name!r}")

    # type checks on every column come before missing-value checks
    for name in columns:
        for index, value in enumerate(table.column(name)):
            if value is not None and not _is_number(value):
                raise InvalidColumnError(
                    f"Column {name!r} is not numeric: observation {index} holds {value!r}"
                )

    for name in columns:
        for index, value in enumerate(table.column(name)):
            if _is_missing(value):
                raise MissingValueError(f"Column {name!r} is missing a value at observation {index}")

    values = np.array(
        [[float(row[name]) for name in columns] for row in table.rows],
        dtype=float,
    ).reshape(len(table), len(columns))
    return NumericTable(columns=columns, values=values)


def compute_distances(numeric_table: NumericTable | np.ndarray) -> DistanceMatrix:
    """Compute the pairwise Euclidean distance matrix."""
    if isinstance(numeric_table, NumericTable):
        x = numeric_table.as_numpy()
    else:
        x = NumericTable.from_array(numeric_table).as_numpy()

    if x.shape[0] == 0:
        return DistanceMatrix(values=np.zeros((0, 0), dtype=float))

    # elementwise squares of (a - b) and (b - a) are identical, so the
    # result is exactly symmetric with an exact zero diagonal
    diffs = x[:, None, :] - x[None, :, :]
    return DistanceMatrix(values=np.sqrt((diffs**2).sum(axis=-1)))
