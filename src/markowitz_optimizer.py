"""
Markowitz mean-variance optimization for the allocation engine.

This module implements the closed-form fully invested portfolios of classic
mean-variance theory: minimum variance, risk-aversion weighted, target return,
and the efficient frontier traced by sweeping target returns. When a
closed-form solution breaks the configured constraints, the optimizer falls
back to an iterative clip-and-renormalize projection.
"""

import copy
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from config import get_config
from constants import EPSILON
from constraints import Constraint, ConstraintSet
from interfaces import MarkowitzResult, PortfolioOptimizerInterface
from linear_algebra import Matrix, Vector
from logging_config import get_logger, log_execution_time
from market_inputs import CovarianceMatrix, ExpectedReturns


class MarkowitzOptimizer(PortfolioOptimizerInterface):
    """Closed-form mean-variance optimizer with a projection fallback.

    Every call is a fresh solve; the optimizer holds private copies of its
    inputs and no state between calls besides the tuning parameters.

    Structural problems (mismatched dimensions, an obviously infeasible
    constraint set, negative risk aversion) raise ``ValueError``. Numerical
    failures (singular or non positive-definite covariance, unreachable target
    return) are reported as ``converged=False`` results.
    """

    def __init__(self, expected_returns: ExpectedReturns, covariance: CovarianceMatrix,
                 constraints: Optional[Union[ConstraintSet, Sequence[Constraint]]] = None,
                 max_iterations: Optional[int] = None, tolerance: Optional[float] = None):
        """Initialize the optimizer.

        Args:
            expected_returns: Expected asset returns
            covariance: Asset covariance matrix
            constraints: Constraint set consulted after each closed-form solve
            max_iterations: Iteration cap of the projection fallback
                (default from configuration)
            tolerance: Slack on the achievable target-return range
                (default from configuration)
        """
        self.logger = get_logger(__name__)
        config = get_config()

        self._expected_returns = copy.deepcopy(expected_returns)
        self._covariance = copy.deepcopy(covariance)
        self._constraints = ConstraintSet(list(constraints) if constraints is not None else None)
        self._max_iterations = config.optimization.max_iterations
        self._tolerance = config.optimization.tolerance

        if max_iterations is not None:
            self.set_max_iterations(max_iterations)
        if tolerance is not None:
            self.set_tolerance(tolerance)

        self._validate()

        self.logger.info(
            f"Markowitz optimizer initialized with {self.num_assets} assets "
            f"and {len(self._constraints)} constraints"
        )

    def _validate(self) -> None:
        if self._expected_returns.empty:
            raise ValueError("Expected returns cannot be empty")
        if self._covariance.empty:
            raise ValueError("Covariance matrix cannot be empty")
        if not self._covariance.dimensions_match(self._expected_returns.size):
            raise ValueError(
                "Expected returns and covariance matrix dimensions must match "
                f"({self._expected_returns.size} != {self._covariance.size})"
            )
        if not self._constraints.empty and self._constraints.has_infeasible_combination(self.num_assets):
            raise ValueError("Constraint set contains infeasible combinations")

    @property
    def num_assets(self) -> int:
        return self._expected_returns.size

    @property
    def expected_returns(self) -> ExpectedReturns:
        return copy.deepcopy(self._expected_returns)

    @property
    def covariance(self) -> CovarianceMatrix:
        return copy.deepcopy(self._covariance)

    @property
    def constraints(self) -> ConstraintSet:
        return ConstraintSet(self._constraints.constraints)

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def tolerance(self) -> float:
        return self._tolerance

    def set_max_iterations(self, max_iterations: int) -> None:
        if max_iterations <= 0:
            raise ValueError("Maximum iterations must be positive")
        self._max_iterations = int(max_iterations)

    def set_tolerance(self, tolerance: float) -> None:
        if tolerance <= 0.0:
            raise ValueError("Tolerance must be positive")
        self._tolerance = float(tolerance)

    def add_constraint(self, constraint: Constraint) -> None:
        """Add a constraint, refusing one that makes the set obviously infeasible."""
        candidate = ConstraintSet(self._constraints.constraints + [constraint])
        if candidate.has_infeasible_combination(self.num_assets):
            raise ValueError(f"Adding {constraint.name} makes the constraint set infeasible")
        self._constraints = candidate

    def _inverse_products(self) -> Tuple[Vector, Vector, Vector, Vector]:
        """Return mu, ones, inv(S) @ mu and inv(S) @ ones."""
        covariance_inverse: Matrix = self._covariance.data.inverse()
        mu = self._expected_returns.data
        ones = Vector(self.num_assets, 1.0)
        return mu, ones, covariance_inverse @ mu, covariance_inverse @ ones

    def _compute_variance(self, weights: Vector) -> float:
        return weights.dot(self._covariance.data @ weights)

    def _build_result(self, weights: Vector, message: str) -> MarkowitzResult:
        """Attach portfolio statistics to ``weights``."""
        expected_return = self._expected_returns.data.dot(weights)
        variance = self._compute_variance(weights)
        risk = float(np.sqrt(max(0.0, variance)))
        sharpe_ratio = expected_return / risk if risk > EPSILON else 0.0

        constraints_satisfied = None
        if not self._constraints.empty:
            constraints_satisfied = self._constraints.is_feasible(weights)

        return MarkowitzResult(
            weights=weights,
            expected_return=expected_return,
            risk=risk,
            sharpe_ratio=sharpe_ratio,
            converged=True,
            message=message,
            constraints_satisfied=constraints_satisfied,
        )

    def _finalize(self, weights: Vector, message: str) -> MarkowitzResult:
        if not self._constraints.empty and not self._constraints.is_feasible(weights):
            violated = ", ".join(self._constraints.violations(weights))
            self.logger.info(f"Closed-form weights violate {violated}; projecting onto constraints")
            return self._solve_constrained_qp(weights)
        return self._build_result(weights, message)

    def _failure(self, message: str) -> MarkowitzResult:
        self.logger.warning(message)
        return MarkowitzResult.failure(message)

    def minimum_variance(self) -> MarkowitzResult:
        """Compute the minimum-variance portfolio ``w = inv(S) 1 / (1' inv(S) 1)``."""
        try:
            _, ones, _, cov_inv_ones = self._inverse_products()
        except ArithmeticError as e:
            return self._failure(f"Optimization failed: {e}")

        denominator = ones.dot(cov_inv_ones)
        if abs(denominator) < EPSILON:
            return self._failure("Singular covariance matrix")

        weights = cov_inv_ones / denominator
        self.logger.debug(f"Minimum variance weights: {weights.tolist()}")
        return self._finalize(weights, "Minimum variance portfolio computed")

    def optimize(self, risk_aversion: float) -> MarkowitzResult:
        """Compute the fully invested mean-variance portfolio for ``risk_aversion``.

        Solves ``w = lambda inv(S) mu + gamma inv(S) 1`` with
        ``gamma = (1 - lambda 1' inv(S) mu) / (1' inv(S) 1)``. A zero risk
        aversion yields the minimum-variance portfolio.

        Args:
            risk_aversion: Non-negative trade-off parameter lambda

        Raises:
            ValueError: If ``risk_aversion`` is negative
        """
        if risk_aversion < 0.0:
            raise ValueError("Risk aversion parameter must be non-negative")

        if risk_aversion < EPSILON:
            return self.minimum_variance()

        try:
            _, ones, cov_inv_mu, cov_inv_ones = self._inverse_products()
        except ArithmeticError as e:
            return self._failure(f"Optimization failed: {e}")

        ones_cov_inv_mu = ones.dot(cov_inv_mu)
        ones_cov_inv_ones = ones.dot(cov_inv_ones)

        if abs(ones_cov_inv_ones) < EPSILON:
            return self._failure("Singular covariance matrix")

        gamma = (1.0 - risk_aversion * ones_cov_inv_mu) / ones_cov_inv_ones
        weights = cov_inv_mu * risk_aversion + cov_inv_ones * gamma

        self.logger.debug(f"Mean-variance weights (lambda={risk_aversion}): {weights.tolist()}")
        return self._finalize(weights, "Mean-variance portfolio computed")

    def target_return(self, target: float) -> MarkowitzResult:
        """Compute the minimum-variance portfolio whose expected return is ``target``.

        The two Lagrange multipliers solve ``[[A, B], [B, C]]`` with
        ``A = mu' inv(S) mu``, ``B = mu' inv(S) 1`` and ``C = 1' inv(S) 1``.
        Targets outside ``[min(mu), max(mu)]`` (plus tolerance) and constant
        returns are reported as non-converged.
        """
        min_return = self._expected_returns.min()
        max_return = self._expected_returns.max()

        if target < min_return - self._tolerance or target > max_return + self._tolerance:
            return self._failure("Target return is not achievable")

        try:
            mu, ones, cov_inv_mu, cov_inv_ones = self._inverse_products()
        except ArithmeticError as e:
            return self._failure(f"Optimization failed: {e}")

        a_coef = mu.dot(cov_inv_mu)
        b_coef = mu.dot(cov_inv_ones)
        c_coef = ones.dot(cov_inv_ones)

        det = a_coef * c_coef - b_coef * b_coef
        if abs(det) < EPSILON:
            return self._failure("System is singular (returns may be constant)")

        a = (c_coef * target - b_coef) / det
        b = (a_coef - b_coef * target) / det
        weights = cov_inv_mu * a + cov_inv_ones * b

        self.logger.debug(f"Target return {target:.6f} weights: {weights.tolist()}")
        return self._finalize(weights, "Target return portfolio computed")

    @log_execution_time
    def efficient_frontier(self, num_points: Optional[int] = None) -> List[MarkowitzResult]:
        """Trace the efficient frontier.

        Args:
            num_points: Number of evenly spaced target returns between the
                minimum-variance return and the highest asset return
                (default from configuration)

        Returns:
            Converged portfolios in order of increasing target return; empty if
            the minimum-variance portfolio cannot be computed

        Raises:
            ValueError: If ``num_points`` is less than 2
        """
        if num_points is None:
            num_points = get_config().optimization.frontier_points
        if num_points < 2:
            raise ValueError("Number of points must be at least 2")

        min_variance = self.minimum_variance()
        if not min_variance.success:
            self.logger.warning(f"Efficient frontier unavailable: {min_variance.message}")
            return []

        min_return = min_variance.expected_return
        max_return = self._expected_returns.max()

        frontier = []
        for target in np.linspace(min_return, max_return, num_points):
            result = self.target_return(float(target))
            if result.success:
                frontier.append(result)

        self.logger.info(f"Efficient frontier computed with {len(frontier)}/{num_points} points")
        return frontier

    def _solve_constrained_qp(self, initial_weights: Vector) -> MarkowitzResult:
        """Project weights onto the constraints by clipping and renormalizing.

        This is a heuristic fixed-point iteration, not a quadratic program: it
        stops when the constraint set is satisfied or after ``max_iterations``
        rounds. The result always reports ``converged=True``; whether the
        constraints hold is recorded in ``constraints_satisfied`` and the message.
        """
        n = self.num_assets
        weights = initial_weights.to_numpy()
        feasible = False
        iterations = 0

        for iterations in range(1, self._max_iterations + 1):
            weights = np.maximum(weights, 0.0)

            total = weights.sum()
            if abs(total) > EPSILON:
                weights = weights / total
            else:
                weights = np.full(n, 1.0 / n)

            if self._constraints.is_feasible(weights):
                feasible = True
                break

        message = "Constrained portfolio computed"
        if not feasible:
            message += f" (constraints not satisfied after {iterations} iterations)"
            self.logger.warning(message)
        else:
            self.logger.debug(f"Projection reached feasibility after {iterations} iterations")

        result = self._build_result(Vector(weights), message)
        result.constraints_satisfied = feasible
        return result
