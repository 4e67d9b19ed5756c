"""
Base interfaces and result records for the allocation engine.

This module defines the optimization result shared by every optimizer and the
abstract interfaces the Markowitz and Black-Litterman optimizers implement.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import EPSILON, SERIALIZATION_PRECISION
from linear_algebra import Vector


RESULT_KEYS = ("converged", "message", "expectedReturn", "risk", "sharpeRatio", "weights")


def _fixed(value: float, precision: int = SERIALIZATION_PRECISION) -> str:
    return f"{value:.{precision}f}"


@dataclass
class MarkowitzResult:
    """Data structure for optimization results.

    ``weights`` are only meaningful when ``converged`` is True.
    ``constraints_satisfied`` is None when no constraint set was checked,
    otherwise whether the returned weights satisfy it.
    """
    weights: Vector = field(default_factory=Vector)
    expected_return: float = 0.0
    risk: float = 0.0
    sharpe_ratio: float = 0.0
    converged: bool = False
    message: str = ""
    constraints_satisfied: Optional[bool] = None

    @classmethod
    def failure(cls, message: str) -> "MarkowitzResult":
        return cls(converged=False, message=message, constraints_satisfied=False)

    @property
    def success(self) -> bool:
        return self.converged

    def calculate_sharpe_ratio(self, risk_free_rate: float = 0.0) -> float:
        """Excess return per unit of risk; 0 when risk is (near) zero."""
        if self.risk <= EPSILON:
            return 0.0
        return (self.expected_return - risk_free_rate) / self.risk

    def set_risk_free_rate(self, risk_free_rate: float) -> None:
        self.sharpe_ratio = self.calculate_sharpe_ratio(risk_free_rate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "converged": self.converged,
            "message": self.message,
            "expectedReturn": self.expected_return,
            "risk": self.risk,
            "sharpeRatio": self.sharpe_ratio,
            "weights": self.weights.tolist(),
        }

    def to_json(self) -> str:
        """Serialize to the canonical JSON object with fixed 8-decimal numbers."""
        weights = ", ".join(_fixed(w) for w in self.weights)
        lines = [
            "{",
            f'  "converged": {"true" if self.converged else "false"},',
            f'  "message": {json.dumps(self.message)},',
            f'  "expectedReturn": {_fixed(self.expected_return)},',
            f'  "risk": {_fixed(self.risk)},',
            f'  "sharpeRatio": {_fixed(self.sharpe_ratio)},',
            f'  "weights": [{weights}]',
            "}",
        ]
        return "\n".join(lines)

    def to_csv(self, include_header: bool = True) -> str:
        """Serialize as an optional header line plus one data row."""
        lines = []
        if include_header:
            header = ["converged", "message", "expectedReturn", "risk", "sharpeRatio"]
            header.extend(f"weight_{i}" for i in range(len(self.weights)))
            lines.append(",".join(header))

        quoted_message = '"' + self.message.replace('"', '""') + '"'
        row = [
            "true" if self.converged else "false",
            quoted_message,
            _fixed(self.expected_return),
            _fixed(self.risk),
            _fixed(self.sharpe_ratio),
        ]
        row.extend(_fixed(w) for w in self.weights)
        lines.append(",".join(row))
        return "\n".join(lines)

    @classmethod
    def from_json(cls, text: str) -> "MarkowitzResult":
        """Parse a result produced by ``to_json``.

        Raises:
            ValueError: If the text is not valid JSON or a required key is missing
        """
        payload = json.loads(text)
        if not isinstance(payload, dict):
            raise ValueError("Result JSON must be an object")

        missing = [key for key in RESULT_KEYS if key not in payload]
        if missing:
            raise ValueError(f"Key not found: {', '.join(missing)}")

        return cls(
            weights=Vector([float(w) for w in payload["weights"]]),
            expected_return=float(payload["expectedReturn"]),
            risk=float(payload["risk"]),
            sharpe_ratio=float(payload["sharpeRatio"]),
            converged=bool(payload["converged"]),
            message=str(payload["message"]),
        )


class PortfolioOptimizerInterface(ABC):
    """Interface for mean-variance portfolio optimization."""

    @abstractmethod
    def minimum_variance(self) -> MarkowitzResult:
        """Compute the fully invested minimum-variance portfolio."""
        pass

    @abstractmethod
    def optimize(self, risk_aversion: float) -> MarkowitzResult:
        """Compute the mean-variance portfolio for a risk aversion level."""
        pass

    @abstractmethod
    def target_return(self, target: float) -> MarkowitzResult:
        """Compute the minimum-variance portfolio with a given expected return."""
        pass

    @abstractmethod
    def efficient_frontier(self, num_points: int) -> List[MarkowitzResult]:
        """Sweep the efficient frontier."""
        pass


class ReturnModelInterface(ABC):
    """Interface for models that blend prior returns with investor views."""

    @abstractmethod
    def compute_posterior_returns(self):
        """Compute expected returns after incorporating views."""
        pass

    @abstractmethod
    def optimize(self, risk_aversion: Optional[float] = None) -> MarkowitzResult:
        """Optimize a portfolio on the posterior returns."""
        pass
