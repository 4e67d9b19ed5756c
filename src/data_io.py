"""
File adapters for the allocation engine.

Loads capital market inputs, market weights, investor views and constraint
sets from CSV, JSON or YAML files, and writes optimization results. Parsing
problems raise ``InputFileError``; the domain wrappers still validate the
parsed values and raise their own errors.
"""

import json
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import yaml

from black_litterman_optimizer import View
from config import get_config
from constants import EPSILON
from constraints import Constraint, ConstraintSet
from interfaces import MarkowitzResult
from linear_algebra import Vector
from logging_config import get_logger
from market_inputs import CovarianceMatrix, ExpectedReturns


logger = get_logger(__name__)

PathLike = Union[str, Path]


class InputFileError(Exception):
    """Custom exception for unreadable or malformed input files."""
    pass


def _suffix(path: PathLike) -> str:
    return Path(path).suffix.lower()


def _load_structured(path: PathLike, what: str) -> Any:
    """Parse a JSON or YAML document."""
    suffix = _suffix(path)
    if suffix not in ('.json', '.yaml', '.yml'):
        raise InputFileError(f"Unsupported {what} file format: {suffix or '<none>'}")

    try:
        with open(path, 'r') as f:
            if suffix == '.json':
                return json.load(f)
            return yaml.safe_load(f)
    except OSError as e:
        raise InputFileError(f"Cannot open {what} file: {path} ({e})") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise InputFileError(f"Malformed {what} file {path}: {e}") from e


def _is_numeric(token: Any) -> bool:
    try:
        float(token)
    except (TypeError, ValueError):
        return False
    return True


def _read_numeric_csv(path: PathLike, what: str) -> Tuple[np.ndarray, Optional[List[str]]]:
    """Read a numeric CSV table, treating a non-numeric first row as a header.

    Blank lines and lines starting with ``#`` are ignored.

    Returns:
        Tuple of (2-D float array, header labels or None)
    """
    try:
        frame = pd.read_csv(path, header=None, comment='#', skip_blank_lines=True,
                            skipinitialspace=True, dtype=str)
    except OSError as e:
        raise InputFileError(f"Cannot open {what} file: {path} ({e})") from e
    except pd.errors.EmptyDataError as e:
        raise InputFileError(f"No valid {what} data found in file: {path}") from e
    except pd.errors.ParserError as e:
        raise InputFileError(f"Malformed {what} file {path}: {e}") from e

    frame = frame.dropna(how='all').dropna(axis=1, how='all')
    if frame.empty:
        raise InputFileError(f"No valid {what} data found in file: {path}")

    labels = None
    first_row = [value for value in frame.iloc[0].tolist() if pd.notna(value)]
    if not all(_is_numeric(value) for value in first_row):
        labels = [str(value).strip() for value in first_row]
        frame = frame.iloc[1:]

    if frame.empty:
        raise InputFileError(f"No valid {what} data found in file: {path}")

    try:
        values = frame.apply(lambda column: pd.to_numeric(column.str.strip())).to_numpy(dtype=float)
    except (ValueError, AttributeError) as e:
        raise InputFileError(f"Invalid number in {what} file {path}: {e}") from e

    return values, labels


def _vector_from_csv(path: PathLike, what: str) -> Tuple[np.ndarray, Optional[List[str]]]:
    """Read a vector from a single data row, or from the first column of a table.

    A header names the assets only in the single-row form.
    """
    values, labels = _read_numeric_csv(path, what)
    if values.shape[0] == 1:
        vector = values[0]
    else:
        vector = values[:, 0]
        if values.shape[1] > 1:
            logger.debug(f"Using the first of {values.shape[1]} columns in {what} file {path}")
        labels = None

    vector = vector[~np.isnan(vector)]
    if vector.size == 0:
        raise InputFileError(f"No valid {what} data found in file: {path}")
    if labels is not None and len(labels) != vector.size:
        logger.debug(f"Ignoring {what} header {labels}: does not name one column per asset")
        labels = None
    return vector, labels


def _vector_from_document(document: Any, key: str, path: PathLike,
                          what: str) -> Tuple[np.ndarray, Optional[List[str]]]:
    labels = None
    if isinstance(document, dict):
        if key not in document:
            raise InputFileError(f"Key not found in {what} file {path}: {key}")
        labels = document.get("labels")
        document = document[key]

    if not isinstance(document, list) or not document:
        raise InputFileError(f"No valid {what} data found in file: {path}")

    try:
        values = np.array([float(v) for v in document])
    except (TypeError, ValueError) as e:
        raise InputFileError(f"Invalid number in {what} file {path}: {e}") from e

    return values, [str(label) for label in labels] if labels else None


def load_expected_returns(path: PathLike) -> ExpectedReturns:
    """Load expected returns from CSV or JSON.

    CSV files hold the returns as a single row, or in the first column of a
    table; a non-numeric header row naming every asset of a single-row file
    becomes the labels. JSON files hold a list or a
    ``{"returns": [...], "labels": [...]}`` object.
    """
    if _suffix(path) == '.csv':
        values, labels = _vector_from_csv(path, "returns")
    else:
        values, labels = _vector_from_document(_load_structured(path, "returns"), "returns",
                                               path, "returns")

    logger.info(f"Loaded {values.size} expected returns from {path}")
    return ExpectedReturns(values, labels=labels)


def load_covariance(path: PathLike) -> CovarianceMatrix:
    """Load a covariance matrix from CSV or JSON.

    CSV files hold an n x n table with an optional header row of asset labels.
    JSON files hold a nested list or a ``{"covariance": [[...]], "labels": [...]}``
    object.
    """
    labels = None
    if _suffix(path) == '.csv':
        values, labels = _read_numeric_csv(path, "covariance")
    else:
        document = _load_structured(path, "covariance")
        if isinstance(document, dict):
            if "covariance" not in document:
                raise InputFileError(f"Key not found in covariance file {path}: covariance")
            labels = document.get("labels")
            document = document["covariance"]

        if not isinstance(document, list) or not document:
            raise InputFileError(f"No valid covariance data found in file: {path}")
        if any(not isinstance(row, list) or len(row) != len(document) for row in document):
            raise InputFileError("Covariance matrix must be square")
        try:
            values = np.array([[float(v) for v in row] for row in document])
        except (TypeError, ValueError) as e:
            raise InputFileError(f"Invalid number in covariance file {path}: {e}") from e

    if values.ndim != 2 or values.shape[0] != values.shape[1] or np.isnan(values).any():
        raise InputFileError("Covariance matrix must be square")

    logger.info(f"Loaded {values.shape[0]}x{values.shape[1]} covariance matrix from {path}")
    return CovarianceMatrix(values, labels=[str(label) for label in labels] if labels else None)


def load_market_weights(path: PathLike) -> Vector:
    """Load market capitalization weights from CSV or JSON (key ``weights``)."""
    if _suffix(path) == '.csv':
        values, _ = _vector_from_csv(path, "market weights")
    else:
        values, _ = _vector_from_document(_load_structured(path, "market weights"), "weights",
                                          path, "market weights")

    logger.info(f"Loaded {values.size} market weights from {path}")
    return Vector(values)


def load_views(path: PathLike, num_assets: int) -> List[View]:
    """Load investor views from JSON or YAML.

    The document is a list of view objects (or ``{"views": [...]}``), each with
    ``assets`` (or ``weights``), ``expectedReturn`` (or ``expected_return``) and
    an optional ``confidence`` defaulting to the configured value.

    Raises:
        InputFileError: If the document is malformed or a view has the wrong size
    """
    document = _load_structured(path, "views")
    if isinstance(document, dict):
        document = document.get("views")
    if not isinstance(document, list):
        raise InputFileError(f"Views file {path} must contain a list of views")

    default_confidence = get_config().black_litterman.default_confidence
    views = []
    for i, entry in enumerate(document):
        if not isinstance(entry, dict):
            raise InputFileError(f"View {i} must be an object")

        assets = entry.get("assets", entry.get("weights"))
        expected_return = entry.get("expectedReturn", entry.get("expected_return"))
        if assets is None or expected_return is None:
            raise InputFileError(f"View {i} needs 'assets' and 'expectedReturn'")
        if not isinstance(assets, list):
            raise InputFileError(f"Invalid view {i}: 'assets' must be a list of weights")
        if len(assets) != num_assets:
            raise InputFileError(
                f"View {i} has {len(assets)} weights, expected {num_assets}"
            )

        try:
            views.append(View(
                assets=Vector([float(a) for a in assets]),
                expected_return=float(expected_return),
                confidence=float(entry.get("confidence", default_confidence)),
                label=str(entry.get("label", "")),
            ))
        except (TypeError, ValueError) as e:
            raise InputFileError(f"Invalid view {i}: {e}") from e

    logger.info(f"Loaded {len(views)} views from {path}")
    return views


def _tolerance(entry: Any) -> float:
    if isinstance(entry, dict):
        return float(entry.get("tolerance", EPSILON))
    return EPSILON


def _enabled(entry: Any) -> bool:
    return isinstance(entry, dict) or bool(entry)


def load_constraints(path: PathLike) -> ConstraintSet:
    """Load a constraint set from JSON or YAML.

    Example::

        fully_invested: true
        long_only: {tolerance: 1.0e-9}
        box: {lower: 0.0, upper: 0.4}
    """
    document = _load_structured(path, "constraints")
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise InputFileError(f"Constraints file {path} must contain a mapping")

    unknown = set(document) - {"fully_invested", "long_only", "box"}
    if unknown:
        raise InputFileError(f"Unknown constraints in {path}: {', '.join(sorted(unknown))}")

    constraint_set = ConstraintSet()
    try:
        if _enabled(document.get("fully_invested")):
            constraint_set.add(Constraint.fully_invested(_tolerance(document["fully_invested"])))
        if _enabled(document.get("long_only")):
            constraint_set.add(Constraint.long_only(_tolerance(document["long_only"])))
        box = document.get("box")
        if box is not None:
            if not isinstance(box, dict) or "lower" not in box or "upper" not in box:
                raise InputFileError("Box constraint needs 'lower' and 'upper'")
            constraint_set.add(Constraint.box(box["lower"], box["upper"], _tolerance(box)))
    except (TypeError, ValueError) as e:
        raise InputFileError(f"Invalid constraint in {path}: {e}") from e

    logger.info(f"Loaded {len(constraint_set)} constraints from {path}")
    return constraint_set


def write_result(result: MarkowitzResult, path: PathLike) -> None:
    """Write a result as JSON or CSV.

    The format follows the file extension; other extensions use the
    configured ``output.format``.
    """
    suffix = _suffix(path)
    if suffix not in ('.json', '.csv'):
        suffix = f".{get_config().output.format}"

    content = result.to_json() if suffix == '.json' else result.to_csv()

    with open(path, 'w') as f:
        f.write(content + "\n")
    logger.info(f"Wrote result to {path}")
