"""
Main application entry point for the allocation engine.

This module provides the application class that loads inputs, runs the
optimizers and writes results, plus the ``allocation-engine`` command-line
interface with ``mpt``, ``bl`` and ``frontier`` commands.
"""

import argparse
import math
import sys
from enum import IntEnum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

# Add src to path for imports
sys.path.append(str(Path(__file__).parent))

from black_litterman_optimizer import BlackLittermanOptimizer
from config import get_config
from constraints import Constraint, ConstraintSet
from data_io import (
    InputFileError,
    load_constraints,
    load_covariance,
    load_expected_returns,
    load_market_weights,
    load_views,
    write_result,
)
from efficient_frontier import export_frontier_to_csv, export_frontier_to_json, frontier_to_frame
from interfaces import MarkowitzResult
from logging_config import LoggerMixin, setup_logging
from markowitz_optimizer import MarkowitzOptimizer


class ExitCode(IntEnum):
    """Process exit codes of the command-line interface."""
    SUCCESS = 0
    VALIDATION_ERROR = 1
    COMPUTATION_ERROR = 2
    INVALID_ARGUMENTS = 3
    INTERNAL_ERROR = 4


class AllocationEngine(LoggerMixin):
    """Main application class: file inputs in, optimized portfolios out."""

    def __init__(self, config_file: Optional[str] = None, log_level: Optional[str] = None,
                 log_file: Optional[str] = None):
        """Initialize the engine.

        Args:
            config_file: Path to configuration file (optional)
            log_level: Overrides the configured log level
            log_file: Path to a rotating log file (optional)
        """
        self.config = get_config(config_file)

        setup_logging(
            log_level=log_level or self.config.log_level,
            log_file=log_file,
            enable_console=True
        )

        self.logger.info("Initializing allocation engine")
        self.logger.debug(f"Configuration loaded: {self.config}")

    def default_constraints(self) -> ConstraintSet:
        """Constraint set described by the ``constraints`` configuration section."""
        settings = self.config.constraints
        constraints = ConstraintSet()
        if settings.fully_invested:
            constraints.add(Constraint.fully_invested())
        if settings.long_only:
            constraints.add(Constraint.long_only())
        if settings.box_lower is not None and settings.box_upper is not None:
            constraints.add(Constraint.box(settings.box_lower, settings.box_upper))
        return constraints

    def _constraints(self, constraints_file: Optional[str]) -> ConstraintSet:
        if constraints_file:
            return load_constraints(constraints_file)
        return self.default_constraints()

    def run_markowitz(self, returns_file: str, covariance_file: str,
                      constraints_file: Optional[str] = None,
                      risk_aversion: Optional[float] = None,
                      target_return: Optional[float] = None) -> Tuple[MarkowitzResult, List[str]]:
        """Run a Markowitz optimization.

        Without ``risk_aversion`` or ``target_return`` the minimum-variance
        portfolio is computed.

        Returns:
            Tuple of (result, asset names)
        """
        returns = load_expected_returns(returns_file)
        covariance = load_covariance(covariance_file)
        if not returns.labels and covariance.labels:
            returns.set_labels(covariance.labels)

        optimizer = MarkowitzOptimizer(returns, covariance, self._constraints(constraints_file))

        if target_return is not None:
            self.logger.info(f"Optimizing for target return {target_return}")
            result = optimizer.target_return(target_return)
        elif risk_aversion is not None:
            self.logger.info(f"Optimizing with risk aversion {risk_aversion}")
            result = optimizer.optimize(risk_aversion)
        else:
            self.logger.info("Optimizing for minimum variance")
            result = optimizer.minimum_variance()

        return result, returns.asset_names()

    def run_black_litterman(self, weights_file: str, covariance_file: str,
                            views_file: Optional[str] = None,
                            risk_aversion: Optional[float] = None,
                            tau: Optional[float] = None,
                            constraints_file: Optional[str] = None
                            ) -> Tuple[MarkowitzResult, BlackLittermanOptimizer]:
        """Run a Black-Litterman optimization.

        Returns:
            Tuple of (result, optimizer) so callers can inspect the views and
            equilibrium returns
        """
        market_weights = load_market_weights(weights_file)
        covariance = load_covariance(covariance_file)
        constraints = load_constraints(constraints_file) if constraints_file else None

        optimizer = BlackLittermanOptimizer(
            market_weights,
            covariance,
            risk_aversion=risk_aversion,
            tau=tau,
            constraints=constraints,
        )

        if views_file:
            for view in load_views(views_file, optimizer.num_assets):
                optimizer.add_view(view)
        else:
            self.logger.info("No views provided; optimizing on equilibrium returns")

        return optimizer.optimize(), optimizer

    def run_frontier(self, returns_file: str, covariance_file: str,
                     num_points: Optional[int] = None,
                     constraints_file: Optional[str] = None
                     ) -> Tuple[List[MarkowitzResult], Optional[List[str]]]:
        """Compute the efficient frontier.

        Only an explicit constraints file applies here; the configured default
        constraint set is not imposed on frontier portfolios.

        Returns:
            Tuple of (frontier portfolios, asset labels or None when unlabelled)
        """
        returns = load_expected_returns(returns_file)
        covariance = load_covariance(covariance_file)
        if not returns.labels and covariance.labels:
            returns.set_labels(covariance.labels)

        constraints = load_constraints(constraints_file) if constraints_file else None
        optimizer = MarkowitzOptimizer(returns, covariance, constraints)
        return optimizer.efficient_frontier(num_points), returns.labels or None


def format_result(result: MarkowitzResult, asset_names: Sequence[str], title: str,
                  risk_free_rate: float = 0.0) -> str:
    """Human-readable summary of an optimization result."""
    lines = [
        f"=== {title} ===",
        "",
        f"Status: {'SUCCESS' if result.success else 'FAILED'}",
    ]
    if result.message:
        lines.append(f"Message: {result.message}")

    sharpe = f"  Sharpe Ratio:     {result.sharpe_ratio:.4f}"
    if risk_free_rate != 0.0:
        sharpe += f" (rf={risk_free_rate * 100:.4f}%)"

    lines.extend([
        "",
        "Portfolio Metrics:",
        f"  Expected Return:  {result.expected_return * 100:.4f}%",
        f"  Risk (Std Dev):   {result.risk * 100:.4f}%",
        sharpe,
        "",
        "Optimal Weights:",
    ])
    for name, weight in zip(asset_names, result.weights):
        lines.append(f"  {name}: {weight * 100:.4f}%")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="allocation-engine",
        description="Portfolio allocation engine (Markowitz and Black-Litterman)"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file (JSON or YAML)"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides configuration)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Write logs to a rotating file"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    mpt = subparsers.add_parser("mpt", help="Markowitz mean-variance optimization")
    mpt.add_argument("--returns", required=True, help="Expected returns file (CSV or JSON)")
    mpt.add_argument("--covariance", required=True, help="Covariance matrix file (CSV or JSON)")
    mpt.add_argument("--constraints", help="Constraints file (JSON or YAML); default from configuration")
    objective = mpt.add_mutually_exclusive_group()
    objective.add_argument("--risk-aversion", type=float, help="Risk aversion parameter")
    objective.add_argument("--target-return", type=float, help="Target portfolio return")
    mpt.add_argument("--rf-rate", type=float, default=0.0, help="Risk-free rate for the Sharpe ratio")
    mpt.add_argument("--output", help="Output file (.json or .csv); default: stdout")

    bl = subparsers.add_parser("bl", help="Black-Litterman optimization")
    bl.add_argument("--market-weights", required=True, help="Market weights file (CSV or JSON)")
    bl.add_argument("--covariance", required=True, help="Covariance matrix file (CSV or JSON)")
    bl.add_argument("--views", help="Investor views file (JSON or YAML)")
    bl.add_argument("--constraints", help="Constraints file (JSON or YAML)")
    bl.add_argument("--risk-aversion", type=float, help="Market risk aversion (default from configuration)")
    bl.add_argument("--tau", type=float, help="Prior uncertainty scaling (default from configuration)")
    bl.add_argument("--rf-rate", type=float, default=0.0, help="Risk-free rate for the Sharpe ratio")
    bl.add_argument("--output", help="Output file (.json or .csv); default: stdout")

    frontier = subparsers.add_parser("frontier", help="Efficient frontier export")
    frontier.add_argument("--returns", required=True, help="Expected returns file (CSV or JSON)")
    frontier.add_argument("--covariance", required=True, help="Covariance matrix file (CSV or JSON)")
    frontier.add_argument("--constraints", help="Constraints file (JSON or YAML)")
    frontier.add_argument("--points", type=int, help="Number of frontier points (default from configuration)")
    frontier.add_argument("--output", help="Output file (.csv or .json); default: stdout table")

    return parser


def _check_arguments(args: argparse.Namespace) -> Optional[str]:
    """Return an error message for out-of-range argument values."""
    if getattr(args, "rf_rate", None) is not None and not math.isfinite(args.rf_rate):
        return "Risk-free rate must be a finite number"
    if getattr(args, "risk_aversion", None) is not None and args.risk_aversion < 0.0:
        return "Risk aversion must be non-negative"
    if args.command == "bl" and args.risk_aversion is not None and args.risk_aversion == 0.0:
        return "Market risk aversion must be positive"
    if getattr(args, "tau", None) is not None and args.tau <= 0.0:
        return "Tau must be positive"
    if getattr(args, "points", None) is not None and args.points < 2:
        return "Number of points must be at least 2"
    if args.command == "frontier" and args.output and Path(args.output).suffix.lower() not in (".csv", ".json"):
        return "Frontier output must be a .csv or .json file"
    return None


def _emit_result(result: MarkowitzResult, asset_names: Sequence[str], title: str,
                 args: argparse.Namespace) -> ExitCode:
    if not result.success:
        print("Error: Optimization failed", file=sys.stderr)
        if result.message:
            print(f"Details: {result.message}", file=sys.stderr)
        return ExitCode.COMPUTATION_ERROR

    if args.rf_rate != 0.0:
        result.set_risk_free_rate(args.rf_rate)

    if args.output:
        write_result(result, args.output)
        print(f"Results written to: {args.output}")
    else:
        print(format_result(result, asset_names, title, args.rf_rate))
    return ExitCode.SUCCESS


def run_command(engine: AllocationEngine, args: argparse.Namespace) -> ExitCode:
    """Dispatch a parsed command."""
    if args.command == "mpt":
        result, names = engine.run_markowitz(
            args.returns,
            args.covariance,
            constraints_file=args.constraints,
            risk_aversion=args.risk_aversion,
            target_return=args.target_return,
        )
        return _emit_result(result, names, "Modern Portfolio Theory Optimization", args)

    if args.command == "bl":
        result, optimizer = engine.run_black_litterman(
            args.market_weights,
            args.covariance,
            views_file=args.views,
            risk_aversion=args.risk_aversion,
            tau=args.tau,
            constraints_file=args.constraints,
        )
        names = optimizer.equilibrium_returns().asset_names()
        return _emit_result(result, names, "Black-Litterman Optimization", args)

    frontier, names = engine.run_frontier(
        args.returns,
        args.covariance,
        num_points=args.points,
        constraints_file=args.constraints,
    )
    if not frontier:
        print("Error: Efficient frontier could not be computed", file=sys.stderr)
        return ExitCode.COMPUTATION_ERROR

    if args.output and Path(args.output).suffix.lower() == ".json":
        export_frontier_to_json(frontier, args.output, names)
        print(f"Frontier written to: {args.output}")
    elif args.output:
        export_frontier_to_csv(frontier, args.output, names)
        print(f"Frontier written to: {args.output}")
    else:
        print(frontier_to_frame(frontier, names).to_string(index=False, float_format=lambda v: f"{v:.6f}"))
    return ExitCode.SUCCESS


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for command-line interface."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits 0 for --help and 2 for usage errors
        return int(ExitCode.SUCCESS if e.code == 0 else ExitCode.INVALID_ARGUMENTS)

    problem = _check_arguments(args)
    if problem:
        print(f"Error: {problem}", file=sys.stderr)
        return int(ExitCode.INVALID_ARGUMENTS)

    try:
        engine = AllocationEngine(config_file=args.config, log_level=args.log_level,
                                  log_file=args.log_file)
        return int(run_command(engine, args))
    except (InputFileError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return int(ExitCode.VALIDATION_ERROR)
    except Exception as e:
        print("Error: Unexpected error occurred", file=sys.stderr)
        print(f"Details: {e}", file=sys.stderr)
        return int(ExitCode.INTERNAL_ERROR)


if __name__ == "__main__":
    sys.exit(main())
