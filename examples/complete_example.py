#!/usr/bin/env python3
"""
Complete Example: Portfolio Allocation Engine

This script demonstrates the complete workflow of the allocation engine:
1. Capital market inputs
2. Markowitz optimization (minimum variance, risk aversion, target return)
3. Constrained optimization
4. Efficient frontier export
5. Black-Litterman with investor views

Run this script to see the engine in action!
"""

import sys
import tempfile
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from black_litterman_optimizer import BlackLittermanOptimizer, View
from constraints import Constraint, ConstraintSet
from efficient_frontier import export_frontier_to_csv, export_frontier_to_json, frontier_to_frame
from linear_algebra import Vector
from logging_config import setup_logging
from market_inputs import CovarianceMatrix, ExpectedReturns
from markowitz_optimizer import MarkowitzOptimizer


def print_result(title, result, labels):
    print(f"\n{title}")
    print("-" * 30)
    print(f"   Status: {'converged' if result.converged else 'FAILED'} ({result.message})")
    if not result.converged:
        return
    print(f"   Expected return: {result.expected_return:.2%}")
    print(f"   Risk:            {result.risk:.2%}")
    print(f"   Sharpe ratio:    {result.sharpe_ratio:.3f}")
    for label, weight in zip(labels, result.weights):
        print(f"   {label:<12} {weight:8.2%}")


def main():
    """Run the complete allocation example."""

    print("Portfolio Allocation Engine Demo")
    print("=" * 60)

    setup_logging(log_level="WARNING")

    # Step 1: capital market inputs
    labels = ["Bonds", "Stocks", "Real Estate"]
    returns = ExpectedReturns([0.08, 0.12, 0.16], labels=labels)
    covariance = CovarianceMatrix([
        [0.04, 0.01, 0.005],
        [0.01, 0.0225, 0.008],
        [0.005, 0.008, 0.01],
    ], labels=labels)
    print(f"\nAssets: {', '.join(labels)}")
    print(f"Volatilities: {[f'{v:.1%}' for v in covariance.volatilities()]}")

    # Step 2: unconstrained Markowitz portfolios
    optimizer = MarkowitzOptimizer(returns, covariance)
    print_result("Minimum variance", optimizer.minimum_variance(), labels)
    print_result("Risk aversion 0.5", optimizer.optimize(0.5), labels)
    print_result("Target return 14%", optimizer.target_return(0.14), labels)

    # Step 3: constrained portfolio
    constraints = ConstraintSet([Constraint.fully_invested(1e-9), Constraint.long_only()])
    constrained = MarkowitzOptimizer(returns, covariance, constraints)
    result = constrained.optimize(2.0)
    print_result("Long-only, risk aversion 2.0", result, labels)
    print(f"   Constraints satisfied: {result.constraints_satisfied}")

    # Step 4: efficient frontier
    frontier = optimizer.efficient_frontier(20)
    print("\nEfficient frontier")
    print("-" * 30)
    print(frontier_to_frame(frontier, labels).head().to_string(index=False))

    output_dir = Path(tempfile.mkdtemp(prefix="allocation_engine_"))
    export_frontier_to_csv(frontier, output_dir / "efficient_frontier.csv", labels)
    export_frontier_to_json(frontier, output_dir / "efficient_frontier.json", labels)
    print(f"   Frontier exported to {output_dir}")

    # Step 5: Black-Litterman
    bl = BlackLittermanOptimizer(Vector([0.3, 0.3, 0.4]), covariance, risk_aversion=2.5)
    bl.add_view(View(Vector([0.0, 1.0, 0.0]), 0.10, confidence=0.7, label="Stocks rally"))
    bl.add_view(View(Vector([1.0, 0.0, -1.0]), 0.02, confidence=0.4, label="Bonds over REITs"))

    print("\nBlack-Litterman")
    print("-" * 30)
    print(f"   Equilibrium returns: {[f'{r:.2%}' for r in bl.equilibrium_returns().data]}")
    print(f"   Posterior returns:   {[f'{r:.2%}' for r in bl.compute_posterior_returns().data]}")
    print(bl.get_view_summary()[["label", "expected_return", "confidence", "uncertainty"]].to_string(index=False))
    print_result("Black-Litterman portfolio", bl.optimize(), labels)


if __name__ == "__main__":
    main()
