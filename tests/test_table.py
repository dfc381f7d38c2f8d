from __future__ import annotations

import math

import numpy as np
import pytest
from pydantic import ValidationError

from clustersummary import (
    DistanceMatrix,
    InvalidColumnError,
    MissingValueError,
    NumericTable,
    ObservationTable,
    compute_distances,
    select_numeric,
)


def make_table() -> ObservationTable:
    return ObservationTable.from_records(
        [
            {"x": 0.0, "y": 0.0, "species": "a", "flag": True},
            {"x": 3.0, "y": 4.0, "species": "a", "flag": False},
            {"x": 6.0, "y": 8.0, "species": "b", "flag": True},
        ]
    )


class TestObservationTable:
    def test_columns_and_numeric_columns(self):
        table = make_table()

        assert len(table) == 3
        assert table.columns == ["x", "y", "species", "flag"]
        # bools count as categorical labels
        assert table.numeric_columns == ["x", "y"]

    def test_missing_values_do_not_hide_numeric_columns(self):
        table = ObservationTable.from_columns({"x": [1.0, None, 3], "name": ["p", "q", "r"]})
        assert table.numeric_columns == ["x"]

    def test_inconsistent_columns_rejected(self):
        with pytest.raises(ValidationError, match="inconsistent columns"):
            ObservationTable(rows=[{"x": 1.0}, {"y": 2.0}])

    def test_from_records_reports_inconsistent_columns_directly(self):
        with pytest.raises(InvalidColumnError, match=r"missing=\[.a.\], extra=\[.b.\]"):
            ObservationTable.from_records([{"a": 1.0}, {"b": 2.0}])

    def test_from_columns_requires_equal_lengths(self):
        with pytest.raises(InvalidColumnError):
            ObservationTable.from_columns({"x": [1.0, 2.0], "y": [1.0]})

    def test_unknown_column_lookup(self):
        with pytest.raises(InvalidColumnError):
            make_table().column("z")


class TestSelectNumeric:
    def test_projects_in_requested_order(self):
        table = make_table()
        numeric = select_numeric(table, ["y", "x"])

        assert numeric.columns == ["y", "x"]
        assert numeric.n_observations == 3
        assert numeric.dimensions == 2
        np.testing.assert_allclose(numeric.as_numpy(), [[0.0, 0.0], [4.0, 3.0], [8.0, 6.0]])

    def test_does_not_mutate_table(self):
        table = make_table()
        before = [dict(r) for r in table.rows]
        select_numeric(table, ["x", "y"])
        assert table.rows == before

    @pytest.mark.parametrize("columns", [["z"], ["species"], ["flag"], [], ["x", "x"]])
    def test_invalid_columns(self, columns):
        with pytest.raises(InvalidColumnError):
            select_numeric(make_table(), columns)

    @pytest.mark.parametrize("bad", [None, math.nan, math.inf])
    def test_missing_or_non_finite_values(self, bad):
        table = ObservationTable.from_columns({"x": [1.0, bad, 3.0]})
        with pytest.raises(MissingValueError):
            select_numeric(table, ["x"])

    def test_type_errors_reported_before_missing_values(self):
        table = ObservationTable.from_columns({"a": [1.0, None], "b": ["u", "v"]})
        with pytest.raises(InvalidColumnError):
            select_numeric(table, ["a", "b"])

    def test_integers_are_numeric(self):
        table = ObservationTable.from_columns({"n": [1, 2, np.int64(3)]})
        numeric = select_numeric(table, ["n"])
        assert numeric.as_numpy().dtype == float
        np.testing.assert_allclose(numeric.as_numpy().ravel(), [1.0, 2.0, 3.0])


class TestNumericTable:
    def test_from_array_names_columns(self):
        numeric = NumericTable.from_array([[1.0, 2.0], [3.0, 4.0]])
        assert numeric.columns == ["x0", "x1"]

    def test_does_not_freeze_caller_array(self):
        values = np.array([[1.0], [2.0]])
        NumericTable(columns=["a"], values=values)
        values[0, 0] = 5.0
        assert values[0, 0] == 5.0

    def test_standardized(self):
        numeric = NumericTable.from_array([[1.0, 7.0], [2.0, 7.0], [3.0, 7.0]])
        scaled = numeric.standardized().as_numpy()

        np.testing.assert_allclose(scaled.mean(axis=0), [0.0, 0.0], atol=1e-12)
        assert scaled[:, 0].std(ddof=1) == pytest.approx(1.0)
        # constant columns end up all zeros
        np.testing.assert_allclose(scaled[:, 1], [0.0, 0.0, 0.0])


class TestDistances:
    def test_euclidean_values(self):
        distances = compute_distances(select_numeric(make_table(), ["x", "y"]))

        assert distances.size == 3
        assert distances.distance(0, 1) == pytest.approx(5.0)
        assert distances.distance(0, 2) == pytest.approx(10.0)

    def test_symmetric_with_zero_diagonal(self):
        rng = np.random.default_rng(7)
        d = compute_distances(rng.normal(size=(25, 4))).as_numpy()

        assert np.array_equal(d, d.T)
        assert np.all(np.diag(d) == 0.0)
        assert np.all(d >= 0.0)

    def test_triangle_inequality(self):
        rng = np.random.default_rng(11)
        d = compute_distances(rng.uniform(-5, 5, size=(12, 3))).as_numpy()

        n = d.shape[0]
        for i in range(n):
            for j in range(n):
                assert np.all(d[i, j] <= d[i, :] + d[:, j] + 1e-9)

    @pytest.mark.parametrize("bad", [math.nan, math.inf])
    def test_non_finite_array_input(self, bad):
        with pytest.raises(MissingValueError):
            compute_distances(np.array([[0.0, 1.0], [bad, 2.0]]))

    def test_empty_input(self):
        distances = compute_distances(NumericTable(columns=["x"], values=np.zeros((0, 1))))
        assert distances.size == 0

    def test_neighbors(self):
        distances = compute_distances(np.array([[0.0], [1.0], [5.0], [0.5]]))

        neighbors = distances.neighbors(0, top_k=2)
        assert [i for i, _ in neighbors] == [3, 1]
        assert neighbors[0][1] == pytest.approx(0.5)

        assert distances.neighbors(0, top_k=0) == []
        with pytest.raises(IndexError):
            distances.neighbors(4)

    def test_rejects_asymmetric_matrix(self):
        with pytest.raises(ValidationError):
            DistanceMatrix(values=np.array([[0.0, 1.0], [2.0, 0.0]]))

    def test_rejects_non_zero_diagonal(self):
        with pytest.raises(ValidationError):
            DistanceMatrix(values=np.array([[1.0, 1.0], [1.0, 0.0]]))
