"""
Portfolio constraints for the allocation engine.

This module implements the feasibility predicates the optimizers consult
when a closed-form solution breaks an investment rule. Constraints form a
closed set of variants (fully invested, long only, box bounds) identified by
``ConstraintKind``; a ``ConstraintSet`` combines them and performs a cheap
pre-check for combinations that cannot be satisfied by any portfolio.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from constants import EPSILON
from linear_algebra import Vector
from logging_config import get_logger


logger = get_logger(__name__)


class ConstraintKind(Enum):
    """Constraint variants."""
    FULLY_INVESTED = "fully_invested"
    LONG_ONLY = "long_only"
    BOX = "box"


def _validate_tolerance(tolerance: float) -> float:
    if tolerance < 0.0:
        raise ValueError("Tolerance must be non-negative")
    return float(tolerance)


def _as_array(weights: Union[Vector, Sequence[float], np.ndarray]) -> np.ndarray:
    return np.asarray(weights, dtype=float).ravel()


@dataclass(frozen=True)
class Constraint:
    """A single feasibility predicate over portfolio weights.

    Build instances through ``fully_invested``, ``long_only`` and ``box``.
    Box constraints carry either uniform bounds (``lower``/``upper``) or
    per-asset bounds (``lower_bounds``/``upper_bounds``).
    """
    kind: ConstraintKind
    tolerance: float = EPSILON
    lower: float = 0.0
    upper: float = 0.0
    lower_bounds: Optional[Tuple[float, ...]] = None
    upper_bounds: Optional[Tuple[float, ...]] = None

    @classmethod
    def fully_invested(cls, tolerance: float = EPSILON) -> "Constraint":
        """Weights must sum to one within ``tolerance``."""
        return cls(ConstraintKind.FULLY_INVESTED, tolerance=_validate_tolerance(tolerance))

    @classmethod
    def long_only(cls, tolerance: float = EPSILON) -> "Constraint":
        """Every weight must be at least ``-tolerance`` (no short selling)."""
        return cls(ConstraintKind.LONG_ONLY, tolerance=_validate_tolerance(tolerance))

    @classmethod
    def box(cls, lower: Union[float, Sequence[float]], upper: Union[float, Sequence[float]],
            tolerance: float = EPSILON) -> "Constraint":
        """Bound every weight to ``[lower, upper]``.

        Args:
            lower: Uniform lower bound, or one lower bound per asset
            upper: Uniform upper bound, or one upper bound per asset
            tolerance: Slack allowed on both sides of the bounds

        Raises:
            ValueError: If a lower bound exceeds its upper bound, per-asset bound
                vectors are empty or of different lengths, or tolerance is negative
        """
        tolerance = _validate_tolerance(tolerance)
        uniform_lower = np.isscalar(lower)
        uniform_upper = np.isscalar(upper)

        if uniform_lower and uniform_upper:
            if lower > upper:
                raise ValueError("Lower bound must be <= upper bound")
            return cls(ConstraintKind.BOX, tolerance=tolerance, lower=float(lower), upper=float(upper))

        if uniform_lower or uniform_upper:
            raise ValueError("Box bounds must both be uniform or both be per-asset")

        lower_bounds = tuple(float(x) for x in lower)
        upper_bounds = tuple(float(x) for x in upper)
        if len(lower_bounds) != len(upper_bounds):
            raise ValueError("Lower and upper bounds must have the same size")
        if not lower_bounds:
            raise ValueError("Bounds vectors cannot be empty")
        if any(lo > hi for lo, hi in zip(lower_bounds, upper_bounds)):
            raise ValueError("Lower bound must be <= upper bound for all assets")

        return cls(ConstraintKind.BOX, tolerance=tolerance,
                   lower_bounds=lower_bounds, upper_bounds=upper_bounds)

    @property
    def has_uniform_bounds(self) -> bool:
        return self.kind is ConstraintKind.BOX and self.lower_bounds is None

    @property
    def name(self) -> str:
        if self.kind is ConstraintKind.FULLY_INVESTED:
            return "FullyInvested"
        if self.kind is ConstraintKind.LONG_ONLY:
            return "LongOnly"
        return "BoxConstraint"

    @property
    def description(self) -> str:
        if self.kind is ConstraintKind.FULLY_INVESTED:
            return f"Portfolio weights must sum to 1.0 (tolerance: {self.tolerance:g})"
        if self.kind is ConstraintKind.LONG_ONLY:
            return "All portfolio weights must be non-negative (no short selling)"
        if self.has_uniform_bounds:
            return f"All weights must be in [{self.lower:g}, {self.upper:g}]"
        return "Weights must satisfy per-asset bounds"

    def bounds_for(self, num_assets: int) -> Tuple[np.ndarray, np.ndarray]:
        """Lower and upper bound arrays of a box constraint over ``num_assets`` assets."""
        if self.kind is not ConstraintKind.BOX:
            raise ValueError(f"{self.name} has no bounds")
        if self.has_uniform_bounds:
            return np.full(num_assets, self.lower), np.full(num_assets, self.upper)
        return np.array(self.lower_bounds), np.array(self.upper_bounds)

    def is_feasible(self, weights: Union[Vector, Sequence[float], np.ndarray]) -> bool:
        """Check whether ``weights`` satisfy this constraint.

        Empty weight vectors are never feasible.
        """
        w = _as_array(weights)
        if w.size == 0:
            return False

        if self.kind is ConstraintKind.FULLY_INVESTED:
            return bool(abs(np.sum(w) - 1.0) <= self.tolerance)

        if self.kind is ConstraintKind.LONG_ONLY:
            return bool(np.all(w >= -self.tolerance))

        if self.kind is ConstraintKind.BOX:
            if not self.has_uniform_bounds and w.size != len(self.lower_bounds):
                return False
            lower, upper = self.bounds_for(w.size)
            return bool(np.all(w >= lower - self.tolerance) and np.all(w <= upper + self.tolerance))

        raise ValueError(f"Unknown constraint kind: {self.kind}")


class ConstraintSet:
    """Ordered collection of constraints; feasible iff every member is."""

    def __init__(self, constraints: Optional[Sequence[Constraint]] = None):
        self._constraints: List[Constraint] = []
        for constraint in constraints or []:
            self.add(constraint)

    def add(self, constraint: Constraint) -> None:
        if not isinstance(constraint, Constraint):
            raise ValueError(f"Cannot add {type(constraint).__name__} as a constraint")
        self._constraints.append(constraint)
        logger.debug(f"Added {constraint.name} constraint: {constraint.description}")

    def clear(self) -> None:
        self._constraints.clear()

    def __len__(self) -> int:
        return len(self._constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._constraints)

    @property
    def empty(self) -> bool:
        return not self._constraints

    @property
    def constraints(self) -> List[Constraint]:
        return list(self._constraints)

    def is_feasible(self, weights: Union[Vector, Sequence[float], np.ndarray]) -> bool:
        return all(constraint.is_feasible(weights) for constraint in self._constraints)

    def violations(self, weights: Union[Vector, Sequence[float], np.ndarray]) -> List[str]:
        """Names of the constraints ``weights`` violate."""
        return [c.name for c in self._constraints if not c.is_feasible(weights)]

    def has_infeasible_combination(self, num_assets: int) -> bool:
        """Detect constraint combinations no portfolio of ``num_assets`` can satisfy.

        Only two known-bad patterns are recognised: fully invested together with
        box bounds whose sums cannot reach one, and long only together with a
        negative upper bound. A False result does not prove feasibility.

        Raises:
            ValueError: If ``num_assets`` is not positive
        """
        if num_assets <= 0:
            raise ValueError("Number of assets must be positive")

        fully_invested = False
        long_only = False
        boxes: List[Constraint] = []

        for constraint in self._constraints:
            if constraint.kind is ConstraintKind.FULLY_INVESTED:
                fully_invested = True
            elif constraint.kind is ConstraintKind.LONG_ONLY:
                long_only = True
            elif constraint.kind is ConstraintKind.BOX:
                boxes.append(constraint)
            else:
                raise ValueError(f"Unknown constraint kind: {constraint.kind}")

        for box in boxes:
            if not box.has_uniform_bounds and len(box.lower_bounds) != num_assets:
                if fully_invested:
                    logger.debug("Box bounds size does not match number of assets")
                    return True
                continue

            lower, upper = box.bounds_for(num_assets)

            if fully_invested:
                if np.sum(lower) > 1.0 + EPSILON:
                    logger.debug(f"Box lower bounds sum to {np.sum(lower):.6f} > 1")
                    return True
                if np.sum(upper) < 1.0 - EPSILON:
                    logger.debug(f"Box upper bounds sum to {np.sum(upper):.6f} < 1")
                    return True

            if long_only and np.any(upper < -EPSILON):
                logger.debug("Negative box upper bound conflicts with long-only")
                return True

        return False
