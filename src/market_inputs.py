"""
Capital market inputs for the allocation engine.

This module implements the validated wrappers around the expected-returns
vector and the asset covariance matrix. Every optimizer formula assumes the
invariants enforced here, so validation runs on construction and again on
every mutation path.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from linear_algebra import Matrix, Vector
from logging_config import get_logger


logger = get_logger(__name__)


class InputValidationError(ValueError):
    """Custom exception for invalid capital market inputs."""
    pass


def _validate_labels(labels: Optional[Sequence[str]], size: int) -> List[str]:
    labels = list(labels) if labels is not None else []
    if labels and len(labels) != size:
        raise InputValidationError(
            f"Labels size ({len(labels)}) must match number of assets ({size}) or be empty"
        )
    return labels


class _LabelledInput(ABC):
    """Label handling shared by the return and covariance wrappers."""

    _labels: List[str]

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of assets."""
        pass

    def __len__(self) -> int:
        return self.size

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def set_labels(self, labels: Optional[Sequence[str]]) -> None:
        self._labels = _validate_labels(labels, self.size)

    def has_label(self, index: int) -> bool:
        return bool(self._labels) and 0 <= index < len(self._labels) and bool(self._labels[index])

    def get_label(self, index: int) -> str:
        """Label for ``index``, or ``"Asset <index>"`` when unlabelled."""
        if self.has_label(index):
            return self._labels[index]
        return f"Asset {index}"

    def asset_names(self) -> List[str]:
        return [self.get_label(i) for i in range(self.size)]

    def dimensions_match(self, n: int) -> bool:
        return self.size == n


class ExpectedReturns(_LabelledInput):
    """Per-asset expected returns.

    Invariants: non-empty, every entry finite, labels absent or one per asset.
    """

    def __init__(self, returns: Union[Vector, Sequence[float], np.ndarray],
                 labels: Optional[Sequence[str]] = None):
        self._returns = Vector(returns)
        self._labels = _validate_labels(labels, self._returns.size)
        self.validate()

    def validate(self) -> None:
        """Validate the wrapped returns.

        Raises:
            InputValidationError: If the returns are empty or contain NaN/infinity
        """
        if self._returns.empty:
            raise InputValidationError("Expected returns cannot be empty")

        if not np.all(np.isfinite(self._returns.to_numpy())):
            raise InputValidationError(
                "Expected returns must have finite values (no NaN or infinity)"
            )

    @property
    def size(self) -> int:
        return self._returns.size

    @property
    def empty(self) -> bool:
        return self._returns.empty

    @property
    def data(self) -> Vector:
        """Copy of the wrapped vector."""
        return Vector(self._returns)

    def __getitem__(self, index: int) -> float:
        return self._returns.at(index)

    def __setitem__(self, index: int, value: float) -> None:
        previous = self._returns.at(index)
        self._returns.set_at(index, value)
        try:
            self.validate()
        except InputValidationError:
            self._returns.set_at(index, previous)
            raise

    def min(self) -> float:
        return self._returns.min()

    def max(self) -> float:
        return self._returns.max()

    def to_series(self) -> pd.Series:
        return pd.Series(self._returns.to_numpy(), index=self.asset_names(), name="expected_return")

    def __repr__(self) -> str:
        return f"ExpectedReturns({self._returns.tolist()}, labels={self._labels})"


class CovarianceMatrix(_LabelledInput):
    """Asset return covariance matrix.

    Invariants: non-empty, square, every entry finite, strictly positive
    diagonal, and symmetric within ``EPSILON * max(1, |a_ij|, |a_ji|)``.
    Positive-definiteness is not enforced here; a semi-definite matrix passes
    validation and surfaces later as a non-converged optimization.
    """

    def __init__(self, matrix: Union[Matrix, Sequence[Sequence[float]], np.ndarray],
                 labels: Optional[Sequence[str]] = None):
        self._matrix = Matrix(matrix)
        self.validate()
        self._labels = _validate_labels(labels, self._matrix.rows)

    def validate(self) -> None:
        """Validate the wrapped matrix.

        Raises:
            InputValidationError: On the first violated invariant
        """
        if self._matrix.empty:
            raise InputValidationError("Covariance matrix cannot be empty")

        if not self._matrix.is_square():
            raise InputValidationError(
                f"Covariance matrix must be square (got {self._matrix.rows}x{self._matrix.cols})"
            )

        values = self._matrix.to_numpy()

        if not np.all(np.isfinite(values)):
            raise InputValidationError(
                "Covariance matrix must have finite values (no NaN or infinity)"
            )

        if np.any(np.diag(values) <= 0.0):
            raise InputValidationError(
                "Covariance matrix diagonal elements (variances) must be positive"
            )

        if not self._matrix.is_symmetric():
            asymmetry = float(np.max(np.abs(values - values.T)))
            logger.debug(f"Rejected covariance matrix with max asymmetry {asymmetry:.3e}")
            raise InputValidationError("Covariance matrix must be symmetric")

    @property
    def size(self) -> int:
        return self._matrix.rows

    @property
    def empty(self) -> bool:
        return self._matrix.empty

    @property
    def data(self) -> Matrix:
        """Copy of the wrapped matrix."""
        return Matrix(self._matrix)

    def __getitem__(self, index) -> float:
        row, col = index
        return self._matrix.at(row, col)

    def __setitem__(self, index, value: float) -> None:
        """Set a covariance entry; the mirrored entry is updated with it."""
        row, col = index
        previous = self._matrix.at(row, col)
        self._matrix.set_at(row, col, value)
        self._matrix.set_at(col, row, value)
        try:
            self.validate()
        except InputValidationError:
            self._matrix.set_at(row, col, previous)
            self._matrix.set_at(col, row, previous)
            raise

    def variances(self) -> Vector:
        return self._matrix.diagonal()

    def volatilities(self) -> Vector:
        return Vector(np.sqrt(self._matrix.diagonal().to_numpy()))

    def is_positive_definite(self) -> bool:
        return self._matrix.is_positive_definite()

    def to_frame(self) -> pd.DataFrame:
        names = self.asset_names()
        return pd.DataFrame(self._matrix.to_numpy(), index=names, columns=names)

    def __repr__(self) -> str:
        return f"CovarianceMatrix({self._matrix.tolist()}, labels={self._labels})"
