"""
Black-Litterman Portfolio Optimization

This module implements the Black-Litterman model: implied equilibrium returns
are derived from market capitalization weights, blended with investor views
weighted by confidence, and the resulting posterior returns are handed to the
Markowitz optimizer.
"""

import copy
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from config import get_config
from constants import EPSILON, MARKET_WEIGHT_SUM_TOLERANCE
from constraints import Constraint, ConstraintSet
from interfaces import MarkowitzResult, ReturnModelInterface
from linear_algebra import Matrix, Vector
from logging_config import get_logger, log_execution_time
from market_inputs import CovarianceMatrix, ExpectedReturns
from markowitz_optimizer import MarkowitzOptimizer


@dataclass
class View:
    """An investor view on a portfolio of assets.

    ``assets`` holds one weight per asset: a single 1.0 states an absolute view
    on that asset, +1/-1 pairs state a relative view. ``confidence`` runs from
    0 (no information) to 1 (certainty).
    """
    assets: Vector
    expected_return: float
    confidence: float = 0.5
    label: str = field(default="")

    def __post_init__(self):
        self.assets = Vector(self.assets)
        self.expected_return = float(self.expected_return)
        self.confidence = float(self.confidence)

        if self.assets.empty:
            raise ValueError("View must reference at least one asset")
        if not np.all(np.isfinite(self.assets.to_numpy())) or not np.isfinite(self.expected_return):
            raise ValueError("View weights and expected return must be finite")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0 and 1")

    @property
    def is_informative(self) -> bool:
        return self.confidence > 0.0


class BlackLittermanOptimizer(ReturnModelInterface):
    """Black-Litterman return model with Markowitz allocation on the posterior."""

    def __init__(self, market_weights: Union[Vector, Sequence[float], np.ndarray],
                 covariance: CovarianceMatrix,
                 risk_aversion: Optional[float] = None,
                 tau: Optional[float] = None,
                 constraints: Optional[Union[ConstraintSet, Sequence[Constraint]]] = None):
        """Initialize the optimizer and compute equilibrium returns.

        Args:
            market_weights: Market capitalization weights (sum to 1, non-negative)
            covariance: Asset covariance matrix
            risk_aversion: Market risk aversion lambda (default from configuration)
            tau: Scaling of the prior uncertainty (default from configuration)
            constraints: Constraints applied when optimizing on the posterior

        Raises:
            ValueError: On invalid weights, parameters or mismatched dimensions
        """
        self.logger = get_logger(__name__)
        config = get_config().black_litterman

        self._market_weights = Vector(market_weights)
        self._covariance = copy.deepcopy(covariance)
        self._risk_aversion = config.risk_aversion if risk_aversion is None else float(risk_aversion)
        self._tau = config.tau if tau is None else float(tau)
        self._constraints = ConstraintSet(list(constraints) if constraints is not None else None)
        self._views: List[View] = []

        self._validate()

        # Reverse optimization: Pi = lambda * Sigma * w_mkt
        self._equilibrium_returns = (self._covariance.data @ self._market_weights) * self._risk_aversion

        self.logger.info(
            f"Black-Litterman optimizer initialized with {self._market_weights.size} assets "
            f"(lambda={self._risk_aversion}, tau={self._tau})"
        )
        self.logger.debug(f"Equilibrium returns: {self._equilibrium_returns.tolist()}")

    def _validate(self) -> None:
        weights = self._market_weights.to_numpy()

        if self._market_weights.empty:
            raise ValueError("Market weights cannot be empty")
        if not self._covariance.dimensions_match(self._market_weights.size):
            raise ValueError(
                "Market weights and covariance matrix dimensions must match "
                f"({self._market_weights.size} != {self._covariance.size})"
            )
        if self._risk_aversion <= 0.0:
            raise ValueError("Risk aversion must be positive")
        if self._tau <= 0.0:
            raise ValueError("Tau must be positive")
        if not np.all(np.isfinite(weights)):
            raise ValueError("Market weights must be finite")
        if abs(weights.sum() - 1.0) > MARKET_WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"Market weights must sum to 1 (got {weights.sum():.8f})")
        if np.any(weights < -EPSILON):
            raise ValueError("Market weights must be non-negative")

    @property
    def num_assets(self) -> int:
        return self._market_weights.size

    @property
    def market_weights(self) -> Vector:
        return Vector(self._market_weights)

    @property
    def covariance(self) -> CovarianceMatrix:
        return copy.deepcopy(self._covariance)

    @property
    def risk_aversion(self) -> float:
        return self._risk_aversion

    @property
    def tau(self) -> float:
        return self._tau

    @property
    def views(self) -> List[View]:
        return list(self._views)

    @property
    def num_views(self) -> int:
        return len(self._views)

    def equilibrium_returns(self) -> ExpectedReturns:
        """Implied equilibrium returns ``Pi = lambda * Sigma * w_mkt``."""
        return ExpectedReturns(Vector(self._equilibrium_returns), labels=self._covariance.labels)

    def add_view(self, view: View) -> None:
        if view.assets.size != self.num_assets:
            raise ValueError(
                f"View size ({view.assets.size}) must match number of assets ({self.num_assets})"
            )
        self._views.append(view)
        self.logger.debug(
            f"Added view {len(self._views) - 1}: return {view.expected_return:.4f} "
            f"with confidence {view.confidence:.2f}"
        )

    def clear_views(self) -> None:
        self._views.clear()

    def _view_uncertainty(self, view: View, scaled_covariance: Matrix) -> float:
        """Diagonal entry of Omega: ``(P_i tau Sigma P_i') (1/c - 1)``, floored at EPSILON."""
        if not view.is_informative:
            return float("inf")
        view_variance = view.assets.dot(scaled_covariance @ view.assets)
        return max(view_variance * (1.0 / view.confidence - 1.0), EPSILON)

    @log_execution_time
    def compute_posterior_returns(self) -> ExpectedReturns:
        """Blend equilibrium returns with the views.

        ``mu_BL = inv(inv(tau S) + P' inv(Omega) P) (inv(tau S) Pi + P' inv(Omega) Q)``.
        Views with zero confidence carry no information and are left out.

        Raises:
            ArithmeticError: If the covariance or posterior precision cannot be inverted
        """
        informative = [view for view in self._views if view.is_informative]
        if not informative:
            if self._views:
                self.logger.info("All views have zero confidence; using equilibrium returns")
            return self.equilibrium_returns()

        n = self.num_assets
        k = len(informative)
        scaled_covariance = self._covariance.data * self._tau

        pick = Matrix(k, n)
        view_returns = Vector(k)
        omega = Matrix(k, k)
        for i, view in enumerate(informative):
            pick.set_row(i, view.assets)
            view_returns[i] = view.expected_return
            omega[i, i] = self._view_uncertainty(view, scaled_covariance)

        scaled_covariance_inverse = scaled_covariance.inverse()
        omega_inverse = omega.inverse()
        pick_t = pick.transpose()

        precision = scaled_covariance_inverse + pick_t @ omega_inverse @ pick
        rhs = scaled_covariance_inverse @ self._equilibrium_returns + pick_t @ (omega_inverse @ view_returns)
        posterior = precision.inverse() @ rhs

        self.logger.debug(f"Posterior returns from {k} views: {posterior.tolist()}")
        return ExpectedReturns(posterior, labels=self._covariance.labels)

    def optimize(self, risk_aversion: Optional[float] = None) -> MarkowitzResult:
        """Optimize a portfolio on the posterior returns.

        Args:
            risk_aversion: Markowitz risk aversion (default: market risk aversion)
        """
        if risk_aversion is None:
            risk_aversion = self._risk_aversion

        try:
            posterior = self.compute_posterior_returns()
        except ArithmeticError as e:
            message = f"Optimization failed: {e}"
            self.logger.warning(message)
            return MarkowitzResult.failure(message)

        optimizer = MarkowitzOptimizer(
            posterior,
            self._covariance,
            constraints=self._constraints if not self._constraints.empty else None,
        )
        return optimizer.optimize(risk_aversion)

    def get_view_summary(self) -> pd.DataFrame:
        """Get summary of current views."""
        columns = ["view_id", "label", "weights", "expected_return", "confidence", "uncertainty"]
        if not self._views:
            return pd.DataFrame(columns=columns)

        scaled_covariance = self._covariance.data * self._tau
        view_data = []
        for i, view in enumerate(self._views):
            view_data.append({
                "view_id": i,
                "label": view.label,
                "weights": view.assets.tolist(),
                "expected_return": view.expected_return,
                "confidence": view.confidence,
                "uncertainty": self._view_uncertainty(view, scaled_covariance),
            })

        return pd.DataFrame(view_data, columns=columns)
