"""
Tests for optimization result records.

This module tests Sharpe ratio handling and the JSON/CSV serialization of
MarkowitzResult.
"""

import json

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from interfaces import MarkowitzResult
from linear_algebra import Vector


class TestMarkowitzResult:
    """Test cases for MarkowitzResult class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.result = MarkowitzResult(
            weights=Vector([0.25, 0.35, 0.4]),
            expected_return=0.1234,
            risk=0.15,
            sharpe_ratio=0.1234 / 0.15,
            converged=True,
            message='Portfolio "A", computed',
        )

    def test_defaults(self):
        result = MarkowitzResult()
        assert not result.success
        assert result.weights.empty
        assert result.constraints_satisfied is None

    def test_failure(self):
        result = MarkowitzResult.failure("Singular covariance matrix")
        assert not result.converged
        assert result.message == "Singular covariance matrix"
        assert result.constraints_satisfied is False

    def test_sharpe_ratio(self):
        """Test Sharpe ratio with and without a risk-free rate."""
        assert self.result.calculate_sharpe_ratio() == pytest.approx(0.1234 / 0.15)
        assert self.result.calculate_sharpe_ratio(0.02) == pytest.approx(0.1034 / 0.15)

        self.result.set_risk_free_rate(0.02)
        assert self.result.sharpe_ratio == pytest.approx(0.1034 / 0.15)

    def test_sharpe_ratio_zero_risk(self):
        result = MarkowitzResult(expected_return=0.1, risk=0.0, converged=True)
        assert result.calculate_sharpe_ratio() == 0.0

    def test_to_json_format(self):
        text = self.result.to_json()
        payload = json.loads(text)

        assert list(payload) == ["converged", "message", "expectedReturn", "risk", "sharpeRatio", "weights"]
        assert payload["converged"] is True
        assert payload["message"] == 'Portfolio "A", computed'
        assert '"expectedReturn": 0.12340000' in text
        assert '"weights": [0.25000000, 0.35000000, 0.40000000]' in text

    def test_json_round_trip(self):
        """Test to_json followed by from_json reproduces every field."""
        restored = MarkowitzResult.from_json(self.result.to_json())

        assert restored.converged == self.result.converged
        assert restored.message == self.result.message
        assert restored.expected_return == pytest.approx(self.result.expected_return, abs=1e-6)
        assert restored.risk == pytest.approx(self.result.risk, abs=1e-6)
        assert restored.sharpe_ratio == pytest.approx(self.result.sharpe_ratio, abs=1e-6)
        assert restored.weights.tolist() == pytest.approx(self.result.weights.tolist(), abs=1e-6)

    def test_from_json_errors(self):
        with pytest.raises(ValueError, match="Key not found: weights"):
            MarkowitzResult.from_json(
                '{"converged": true, "message": "", "expectedReturn": 0.1, "risk": 0.1, "sharpeRatio": 1.0}'
            )
        with pytest.raises(ValueError):
            MarkowitzResult.from_json("not json")
        with pytest.raises(ValueError):
            MarkowitzResult.from_json("[1, 2]")

    def test_to_csv(self):
        lines = self.result.to_csv().split("\n")

        assert lines[0] == "converged,message,expectedReturn,risk,sharpeRatio,weight_0,weight_1,weight_2"
        assert lines[1].startswith('true,"Portfolio ""A"", computed",0.12340000,0.15000000,')
        assert lines[1].endswith(",0.25000000,0.35000000,0.40000000")

    def test_to_csv_without_header(self):
        failed = MarkowitzResult.failure("Target return is not achievable")
        assert failed.to_csv(include_header=False) == (
            'false,"Target return is not achievable",0.00000000,0.00000000,0.00000000'
        )
