"""
Tests for efficient frontier export.

This module tests the DataFrame, CSV and JSON renderings of a frontier.
"""

import json

import pytest
import pandas as pd

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from efficient_frontier import (
    export_frontier_to_csv, export_frontier_to_json,
    frontier_to_csv, frontier_to_frame, frontier_to_json
)
from interfaces import MarkowitzResult
from market_inputs import CovarianceMatrix, ExpectedReturns
from markowitz_optimizer import MarkowitzOptimizer


class TestFrontierExport:
    """Test cases for frontier export functions."""

    def setup_method(self):
        """Set up test fixtures."""
        optimizer = MarkowitzOptimizer(
            ExpectedReturns([0.08, 0.12, 0.16]),
            CovarianceMatrix([
                [0.04, 0.01, 0.005],
                [0.01, 0.0225, 0.008],
                [0.005, 0.008, 0.01],
            ]),
        )
        self.frontier = optimizer.efficient_frontier(10)
        self.labels = ["Bonds", "Stocks", "Real Estate"]

    def test_frame(self):
        frame = frontier_to_frame(self.frontier)

        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == ["return", "volatility", "weight_0", "weight_1", "weight_2"]
        assert len(frame) == len(self.frontier)
        assert frame["return"].tolist() == pytest.approx([p.expected_return for p in self.frontier])

    def test_frame_with_partial_labels(self):
        frame = frontier_to_frame(self.frontier, ["Bonds", ""])
        assert list(frame.columns)[2:] == ["Bonds", "weight_1", "weight_2"]

    def test_failed_portfolios_are_skipped(self):
        frontier = self.frontier + [MarkowitzResult.failure("Target return is not achievable")]
        assert len(frontier_to_frame(frontier)) == len(self.frontier)

    def test_empty_frontier(self):
        with pytest.raises(ValueError, match="empty frontier"):
            frontier_to_csv([])
        with pytest.raises(ValueError, match="empty frontier"):
            frontier_to_json([])

    def test_no_successful_portfolios(self):
        frontier = [MarkowitzResult.failure("Singular covariance matrix")]
        with pytest.raises(ValueError, match="No successful portfolios"):
            frontier_to_frame(frontier)

    def test_csv(self):
        lines = frontier_to_csv(self.frontier, self.labels).strip().split("\n")

        assert lines[0] == "return,volatility,Bonds,Stocks,Real Estate"
        assert len(lines) == len(self.frontier) + 1
        first = lines[1].split(",")
        assert len(first) == 5
        assert all(len(value.split(".")[1]) == 8 for value in first)

    def test_export_csv(self, tmp_path):
        path = tmp_path / "frontier.csv"
        export_frontier_to_csv(self.frontier, path)

        frame = pd.read_csv(path)
        assert list(frame.columns) == ["return", "volatility", "weight_0", "weight_1", "weight_2"]
        assert len(frame) == len(self.frontier)

    def test_json(self):
        payload = json.loads(frontier_to_json(self.frontier, self.labels))

        assert payload["assets"] == self.labels
        assert len(payload["frontier"]) == len(self.frontier)
        point = payload["frontier"][0]
        assert set(point) == {"return", "volatility", "weights"}
        assert point["return"] == pytest.approx(self.frontier[0].expected_return, abs=1e-8)
        assert len(point["weights"]) == 3

    def test_json_without_labels(self):
        payload = json.loads(frontier_to_json(self.frontier))
        assert "assets" not in payload

    def test_export_json(self, tmp_path):
        path = tmp_path / "frontier.json"
        export_frontier_to_json(self.frontier, path, self.labels)

        payload = json.loads(path.read_text())
        assert payload["assets"] == self.labels

    def test_export_to_invalid_path(self, tmp_path):
        with pytest.raises(OSError):
            export_frontier_to_json(self.frontier, tmp_path / "missing" / "frontier.json")
