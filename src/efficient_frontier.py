"""
Efficient frontier export.

Converts a list of frontier portfolios into a table (pandas DataFrame), CSV or
JSON suitable for plotting tools. Non-converged portfolios are skipped.
"""

import json
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pandas as pd

from constants import SERIALIZATION_PRECISION
from interfaces import MarkowitzResult
from logging_config import get_logger


logger = get_logger(__name__)


def _converged(frontier: Sequence[MarkowitzResult]) -> List[MarkowitzResult]:
    if not frontier:
        raise ValueError("Cannot export empty frontier")

    converged = [result for result in frontier if result.success]
    if not converged:
        raise ValueError("No successful portfolios in frontier")
    return converged


def _weight_columns(num_assets: int, asset_labels: Optional[Sequence[str]]) -> List[str]:
    labels = list(asset_labels or [])
    columns = []
    for i in range(num_assets):
        if i < len(labels) and labels[i]:
            columns.append(labels[i])
        else:
            columns.append(f"weight_{i}")
    return columns


def frontier_to_frame(frontier: Sequence[MarkowitzResult],
                      asset_labels: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Tabulate converged frontier portfolios.

    Args:
        frontier: Portfolios as returned by ``efficient_frontier``
        asset_labels: Optional weight column names; missing labels fall back
            to ``weight_<i>``

    Returns:
        DataFrame with ``return``, ``volatility`` and one column per asset weight

    Raises:
        ValueError: If the frontier is empty or has no converged portfolio
    """
    converged = _converged(frontier)
    columns = ["return", "volatility"] + _weight_columns(len(converged[0].weights), asset_labels)

    rows = [
        [result.expected_return, result.risk] + result.weights.tolist()
        for result in converged
    ]
    return pd.DataFrame(rows, columns=columns)


def frontier_to_csv(frontier: Sequence[MarkowitzResult],
                    asset_labels: Optional[Sequence[str]] = None) -> str:
    """CSV text of the frontier with fixed 8-decimal numbers."""
    frame = frontier_to_frame(frontier, asset_labels)
    return frame.to_csv(index=False, float_format=f"%.{SERIALIZATION_PRECISION}f", lineterminator="\n")


def export_frontier_to_csv(frontier: Sequence[MarkowitzResult], filename: Union[str, Path],
                           asset_labels: Optional[Sequence[str]] = None) -> None:
    """Write the frontier as CSV.

    Raises:
        ValueError: If the frontier is empty or has no converged portfolio
        OSError: If the file cannot be written
    """
    content = frontier_to_csv(frontier, asset_labels)
    with open(filename, 'w') as f:
        f.write(content)
    logger.info(f"Exported frontier to {filename}")


def frontier_to_json(frontier: Sequence[MarkowitzResult],
                     asset_labels: Optional[Sequence[str]] = None) -> str:
    """JSON text of the frontier.

    The document is ``{"assets": [...], "frontier": [{"return", "volatility",
    "weights"}, ...]}`` with ``assets`` present only when labels are given.
    """
    converged = _converged(frontier)

    def fixed(value: float) -> str:
        return f"{value:.{SERIALIZATION_PRECISION}f}"

    lines = ["{"]
    if asset_labels:
        lines.append(f'  "assets": [{", ".join(json.dumps(label) for label in asset_labels)}],')
    lines.append('  "frontier": [')

    entries = []
    for result in converged:
        weights = ", ".join(fixed(w) for w in result.weights)
        entries.append(
            "    {\n"
            f'      "return": {fixed(result.expected_return)},\n'
            f'      "volatility": {fixed(result.risk)},\n'
            f'      "weights": [{weights}]\n'
            "    }"
        )
    lines.append(",\n".join(entries))
    lines.append("  ]")
    lines.append("}")
    return "\n".join(lines) + "\n"


def export_frontier_to_json(frontier: Sequence[MarkowitzResult], filename: Union[str, Path],
                            asset_labels: Optional[Sequence[str]] = None) -> None:
    """Write the frontier as JSON.

    Raises:
        ValueError: If the frontier is empty or has no converged portfolio
        OSError: If the file cannot be written
    """
    content = frontier_to_json(frontier, asset_labels)
    with open(filename, 'w') as f:
        f.write(content)
    logger.info(f"Exported frontier to {filename}")
