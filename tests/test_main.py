"""
Tests for the command-line interface and application class.
"""

import json

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import reset_config
from constraints import ConstraintKind
from interfaces import MarkowitzResult
from main import AllocationEngine, ExitCode, main


@pytest.fixture
def inputs(tmp_path):
    """Write a small three-asset problem to disk."""
    returns = tmp_path / "returns.csv"
    returns.write_text("Bonds,Stocks,Gold\n0.08,0.12,0.16\n")

    covariance = tmp_path / "covariance.csv"
    covariance.write_text(
        "0.04,0.01,0.005\n"
        "0.01,0.0225,0.008\n"
        "0.005,0.008,0.01\n"
    )

    weights = tmp_path / "weights.csv"
    weights.write_text("0.3,0.3,0.4\n")

    views = tmp_path / "views.json"
    views.write_text(json.dumps([{"assets": [1.0, 0.0, 0.0], "expectedReturn": 0.06, "confidence": 0.7}]))

    return {
        "returns": str(returns),
        "covariance": str(covariance),
        "weights": str(weights),
        "views": str(views),
        "dir": tmp_path,
    }


class TestAllocationEngine:
    """Test cases for AllocationEngine class."""

    def teardown_method(self):
        reset_config()

    def test_default_constraints(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("constraints: {fully_invested: true, box_lower: 0.0, box_upper: 0.6}\n")

        engine = AllocationEngine(config_file=str(config))
        kinds = [c.kind for c in engine.default_constraints()]
        assert kinds == [ConstraintKind.FULLY_INVESTED, ConstraintKind.LONG_ONLY, ConstraintKind.BOX]

    def test_run_markowitz(self, inputs):
        engine = AllocationEngine()
        result, names = engine.run_markowitz(inputs["returns"], inputs["covariance"])

        assert result.converged
        assert names == ["Bonds", "Stocks", "Gold"]
        assert result.constraints_satisfied is True

    def test_run_black_litterman(self, inputs):
        engine = AllocationEngine()
        result, optimizer = engine.run_black_litterman(
            inputs["weights"], inputs["covariance"], views_file=inputs["views"]
        )

        assert result.converged
        assert optimizer.num_views == 1

    def test_run_frontier(self, inputs):
        engine = AllocationEngine()
        frontier, names = engine.run_frontier(inputs["returns"], inputs["covariance"], num_points=5)

        assert len(frontier) == 5
        assert names == ["Bonds", "Stocks", "Gold"]


class TestMain:
    """Test cases for the command-line entry point."""

    def teardown_method(self):
        reset_config()

    def test_mpt_stdout(self, inputs, capsys):
        code = main(["mpt", "--returns", inputs["returns"], "--covariance", inputs["covariance"]])

        assert code == ExitCode.SUCCESS
        output = capsys.readouterr().out
        assert "Status: SUCCESS" in output
        assert "Bonds:" in output

    def test_mpt_output_file(self, inputs):
        output = inputs["dir"] / "result.json"
        code = main([
            "mpt", "--returns", inputs["returns"], "--covariance", inputs["covariance"],
            "--risk-aversion", "0.5", "--rf-rate", "0.02", "--output", str(output),
        ])

        assert code == ExitCode.SUCCESS
        result = MarkowitzResult.from_json(output.read_text())
        assert result.converged
        assert result.sharpe_ratio == pytest.approx((result.expected_return - 0.02) / result.risk, abs=1e-6)

    def test_mpt_unreachable_target(self, inputs):
        code = main([
            "mpt", "--returns", inputs["returns"], "--covariance", inputs["covariance"],
            "--target-return", "0.5",
        ])
        assert code == ExitCode.COMPUTATION_ERROR

    def test_mpt_missing_file(self, inputs):
        code = main(["mpt", "--returns", "missing.csv", "--covariance", inputs["covariance"]])
        assert code == ExitCode.VALIDATION_ERROR

    def test_dimension_mismatch(self, inputs):
        returns = inputs["dir"] / "short.csv"
        returns.write_text("0.1,0.2\n")

        code = main(["mpt", "--returns", str(returns), "--covariance", inputs["covariance"]])
        assert code == ExitCode.VALIDATION_ERROR

    def test_invalid_arguments(self, inputs):
        assert main([]) == ExitCode.INVALID_ARGUMENTS
        assert main(["mpt", "--returns", inputs["returns"]]) == ExitCode.INVALID_ARGUMENTS
        assert main([
            "mpt", "--returns", inputs["returns"], "--covariance", inputs["covariance"],
            "--risk-aversion", "-1",
        ]) == ExitCode.INVALID_ARGUMENTS
        assert main([
            "frontier", "--returns", inputs["returns"], "--covariance", inputs["covariance"],
            "--points", "1",
        ]) == ExitCode.INVALID_ARGUMENTS

    def test_help(self, capsys):
        assert main(["--help"]) == ExitCode.SUCCESS
        assert "allocation-engine" in capsys.readouterr().out

    def test_bl(self, inputs):
        output = inputs["dir"] / "bl.csv"
        code = main([
            "bl", "--market-weights", inputs["weights"], "--covariance", inputs["covariance"],
            "--views", inputs["views"], "--tau", "0.05", "--output", str(output),
        ])

        assert code == ExitCode.SUCCESS
        assert output.read_text().startswith("converged,message")

    def test_bl_invalid_weights(self, inputs):
        weights = inputs["dir"] / "bad_weights.csv"
        weights.write_text("0.5,0.3,0.1\n")

        code = main(["bl", "--market-weights", str(weights), "--covariance", inputs["covariance"]])
        assert code == ExitCode.VALIDATION_ERROR

    def test_frontier_json(self, inputs):
        output = inputs["dir"] / "frontier.json"
        code = main([
            "frontier", "--returns", inputs["returns"], "--covariance", inputs["covariance"],
            "--points", "8", "--output", str(output),
        ])

        assert code == ExitCode.SUCCESS
        payload = json.loads(output.read_text())
        assert payload["assets"] == ["Bonds", "Stocks", "Gold"]
        assert len(payload["frontier"]) == 8

    def test_frontier_unlabelled_inputs(self, inputs):
        returns = inputs["dir"] / "plain_returns.csv"
        returns.write_text("0.08,0.12,0.16\n")
        csv_output = inputs["dir"] / "frontier.csv"
        json_output = inputs["dir"] / "frontier.json"

        for output in (csv_output, json_output):
            code = main([
                "frontier", "--returns", str(returns), "--covariance", inputs["covariance"],
                "--points", "4", "--output", str(output),
            ])
            assert code == ExitCode.SUCCESS

        header = csv_output.read_text().split("\n")[0]
        assert header == "return,volatility,weight_0,weight_1,weight_2"
        assert "assets" not in json.loads(json_output.read_text())

    def test_bl_scalar_view_weights(self, inputs):
        views = inputs["dir"] / "scalar_views.json"
        views.write_text(json.dumps([{"assets": 1.0, "expectedReturn": 0.06}]))

        code = main([
            "bl", "--market-weights", inputs["weights"], "--covariance", inputs["covariance"],
            "--views", str(views),
        ])
        assert code == ExitCode.VALIDATION_ERROR

    def test_frontier_stdout(self, inputs, capsys):
        code = main(["frontier", "--returns", inputs["returns"], "--covariance", inputs["covariance"],
                     "--points", "3"])

        assert code == ExitCode.SUCCESS
        assert "volatility" in capsys.readouterr().out
