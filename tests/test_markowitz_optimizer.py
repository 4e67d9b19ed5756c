"""
Tests for Markowitz mean-variance optimization.

This module tests the closed-form portfolios, the efficient frontier and the
constraint projection fallback.
"""

import pytest
import numpy as np

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from constraints import Constraint, ConstraintSet
from market_inputs import CovarianceMatrix, ExpectedReturns
from markowitz_optimizer import MarkowitzOptimizer


class TestMarkowitzOptimizer:
    """Test cases for MarkowitzOptimizer class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.returns = ExpectedReturns([0.08, 0.12, 0.16])
        self.covariance = CovarianceMatrix([
            [0.04, 0.01, 0.005],
            [0.01, 0.0225, 0.008],
            [0.005, 0.008, 0.01],
        ])
        self.optimizer = MarkowitzOptimizer(self.returns, self.covariance)

    def test_initialization(self):
        assert self.optimizer.num_assets == 3
        assert self.optimizer.max_iterations == 1000
        assert self.optimizer.tolerance == 1e-8
        assert self.optimizer.constraints.empty

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError, match="dimensions must match"):
            MarkowitzOptimizer(ExpectedReturns([0.1, 0.2]), self.covariance)

    def test_infeasible_constraints_rejected(self):
        constraints = ConstraintSet([Constraint.fully_invested(), Constraint.box(0.0, 0.2)])
        with pytest.raises(ValueError, match="infeasible"):
            MarkowitzOptimizer(self.returns, self.covariance, constraints)

        self.optimizer.add_constraint(Constraint.box(0.4, 0.9))
        with pytest.raises(ValueError, match="infeasible"):
            self.optimizer.add_constraint(Constraint.fully_invested())
        assert len(self.optimizer.constraints) == 1

    def test_tuning_parameters(self):
        self.optimizer.set_max_iterations(10)
        self.optimizer.set_tolerance(1e-6)
        assert self.optimizer.max_iterations == 10
        assert self.optimizer.tolerance == 1e-6

        with pytest.raises(ValueError):
            self.optimizer.set_max_iterations(0)
        with pytest.raises(ValueError):
            self.optimizer.set_tolerance(0.0)
        with pytest.raises(ValueError):
            MarkowitzOptimizer(self.returns, self.covariance, max_iterations=-5)

    def test_inputs_are_copied(self):
        before = self.optimizer.minimum_variance()
        self.returns[0] = 0.5
        self.covariance[0, 0] = 0.09
        after = self.optimizer.minimum_variance()

        assert after.weights.tolist() == pytest.approx(before.weights.tolist())

    def test_two_asset_minimum_variance(self):
        """Test the analytic two-asset minimum-variance weights."""
        optimizer = MarkowitzOptimizer(
            ExpectedReturns([0.08, 0.12]),
            CovarianceMatrix([[0.04, 0.01], [0.01, 0.0225]]),
        )
        result = optimizer.minimum_variance()

        assert result.converged
        assert result.message == "Minimum variance portfolio computed"
        assert result.weights.tolist() == pytest.approx([0.294, 0.706], abs=1e-3)
        assert result.constraints_satisfied is None

    def test_minimum_variance_statistics(self):
        """Test the reported return, risk and Sharpe ratio."""
        result = self.optimizer.minimum_variance()
        weights = result.weights.to_numpy()
        cov = self.covariance.data.to_numpy()

        assert result.converged
        assert weights.sum() == pytest.approx(1.0, abs=1e-6)
        assert result.expected_return == pytest.approx(weights @ np.array([0.08, 0.12, 0.16]))
        assert result.risk == pytest.approx(np.sqrt(weights @ cov @ weights))
        assert result.sharpe_ratio == pytest.approx(result.expected_return / result.risk)
        assert result.risk > 0

    def test_minimum_variance_has_lowest_risk(self):
        min_var = self.optimizer.minimum_variance()
        for risk_aversion in (0.1, 0.5, 1.0):
            assert self.optimizer.optimize(risk_aversion).risk >= min_var.risk - 1e-12

    def test_optimize(self):
        result = self.optimizer.optimize(0.5)

        assert result.converged
        assert result.message == "Mean-variance portfolio computed"
        assert result.weights.sum() == pytest.approx(1.0, abs=1e-6)
        assert result.expected_return > self.optimizer.minimum_variance().expected_return

    def test_optimize_zero_risk_aversion_is_minimum_variance(self):
        result = self.optimizer.optimize(0.0)
        min_var = self.optimizer.minimum_variance()

        assert result.message == "Minimum variance portfolio computed"
        assert result.weights.tolist() == pytest.approx(min_var.weights.tolist())

    def test_optimize_negative_risk_aversion(self):
        with pytest.raises(ValueError, match="non-negative"):
            self.optimizer.optimize(-1.0)

    def test_target_return(self):
        result = self.optimizer.target_return(0.15)

        assert result.converged
        assert result.message == "Target return portfolio computed"
        assert result.expected_return == pytest.approx(0.15, abs=1e-8)
        assert result.weights.sum() == pytest.approx(1.0, abs=1e-6)

    def test_target_return_out_of_range(self):
        """Test targets outside [min, max] of the expected returns."""
        for target in (0.05, 0.2):
            result = self.optimizer.target_return(target)
            assert not result.converged
            assert result.message == "Target return is not achievable"

    def test_target_return_with_constant_returns(self):
        optimizer = MarkowitzOptimizer(
            ExpectedReturns([0.5, 0.5]),
            CovarianceMatrix([[0.25, 0.0], [0.0, 0.25]]),
        )
        result = optimizer.target_return(0.5)

        assert not result.converged
        assert result.message == "System is singular (returns may be constant)"

    def test_not_positive_definite_covariance(self):
        """Test numerical failures are reported, not raised."""
        optimizer = MarkowitzOptimizer(
            ExpectedReturns([0.1, 0.2]),
            CovarianceMatrix([[1.0, 1.0], [1.0, 1.0]]),
        )

        for result in (optimizer.minimum_variance(), optimizer.optimize(1.0), optimizer.target_return(0.15)):
            assert not result.converged
            assert result.message.startswith("Optimization failed")

        assert optimizer.efficient_frontier(5) == []

    def test_scenario_portfolio(self):
        result = self.optimizer.optimize(1.0)

        assert result.converged
        assert result.weights.sum() == pytest.approx(1.0, abs=1e-6)
        assert result.risk > 0


class TestEfficientFrontier:
    """Test cases for the efficient frontier sweep."""

    def setup_method(self):
        """Set up test fixtures."""
        self.optimizer = MarkowitzOptimizer(
            ExpectedReturns([0.08, 0.12, 0.16]),
            CovarianceMatrix([
                [0.04, 0.01, 0.005],
                [0.01, 0.0225, 0.008],
                [0.005, 0.008, 0.01],
            ]),
        )

    def test_frontier_size(self):
        assert len(self.optimizer.efficient_frontier(10)) == 10
        assert len(self.optimizer.efficient_frontier()) == 50

    def test_frontier_bounds(self):
        frontier = self.optimizer.efficient_frontier(10)
        min_var = self.optimizer.minimum_variance()

        assert frontier[0].expected_return == pytest.approx(min_var.expected_return, abs=1e-8)
        assert frontier[-1].expected_return == pytest.approx(0.16, abs=1e-8)

    def test_frontier_monotone_and_convex(self):
        """Test returns are non-decreasing and variance is convex in return."""
        frontier = self.optimizer.efficient_frontier(20)
        returns = [p.expected_return for p in frontier]
        variances = [p.risk ** 2 for p in frontier]

        for previous, current in zip(returns, returns[1:]):
            assert current >= previous - 1e-6

        for i in range(1, len(frontier) - 1):
            assert variances[i] <= (variances[i - 1] + variances[i + 1]) / 2 + 1e-4

        for portfolio in frontier:
            assert portfolio.weights.sum() == pytest.approx(1.0, abs=1e-6)

    def test_frontier_requires_two_points(self):
        with pytest.raises(ValueError, match="at least 2"):
            self.optimizer.efficient_frontier(1)


class TestConstraintProjection:
    """Test cases for the projection fallback."""

    def setup_method(self):
        """Set up test fixtures."""
        # Strong correlation pushes the unconstrained minimum-variance
        # portfolio short the first asset: w = [-4/7, 11/7]
        self.returns = ExpectedReturns([0.06, 0.1])
        self.covariance = CovarianceMatrix([[0.04, 0.018], [0.018, 0.01]])

    def test_unconstrained_portfolio_shorts(self):
        result = MarkowitzOptimizer(self.returns, self.covariance).minimum_variance()
        assert result.weights.tolist() == pytest.approx([-4 / 7, 11 / 7])

    def test_long_only_projection(self):
        optimizer = MarkowitzOptimizer(self.returns, self.covariance, [Constraint.long_only()])
        result = optimizer.minimum_variance()

        assert result.converged
        assert result.message == "Constrained portfolio computed"
        assert result.weights.tolist() == pytest.approx([0.0, 1.0])
        assert result.constraints_satisfied is True
        assert result.expected_return == pytest.approx(0.1)
        assert result.risk == pytest.approx(0.1)

    def test_satisfied_constraints_skip_projection(self):
        optimizer = MarkowitzOptimizer(
            ExpectedReturns([0.08, 0.12]),
            CovarianceMatrix([[0.04, 0.01], [0.01, 0.0225]]),
            ConstraintSet([Constraint.fully_invested(1e-9), Constraint.long_only()]),
        )
        result = optimizer.minimum_variance()

        assert result.message == "Minimum variance portfolio computed"
        assert result.constraints_satisfied is True

    def test_projection_iteration_cap(self):
        """Test an unreachable constraint set is reported after the cap."""
        constraints = ConstraintSet([Constraint.long_only(), Constraint.box(0.0, 0.6)])
        optimizer = MarkowitzOptimizer(self.returns, self.covariance, constraints, max_iterations=10)
        result = optimizer.minimum_variance()

        assert result.converged
        assert result.message == "Constrained portfolio computed (constraints not satisfied after 10 iterations)"
        assert result.constraints_satisfied is False
        assert result.weights.sum() == pytest.approx(1.0)

    def test_add_constraint(self):
        optimizer = MarkowitzOptimizer(self.returns, self.covariance)
        optimizer.add_constraint(Constraint.long_only())

        assert len(optimizer.constraints) == 1
        assert optimizer.minimum_variance().constraints_satisfied is True
