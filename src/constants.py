"""
Numerical constants shared by the allocation engine.

Every near-zero, singularity and tolerance check in the linear algebra layer
and the optimizers reads its threshold from here.
"""

# Machine epsilon for double-precision comparisons
EPSILON = 1e-15

# Market weights passed to Black-Litterman must sum to one within this tolerance
MARKET_WEIGHT_SUM_TOLERANCE = 1e-6

# Defaults for the Markowitz optimizer
DEFAULT_MAX_ITERATIONS = 1000
DEFAULT_TOLERANCE = 1e-8
DEFAULT_FRONTIER_POINTS = 50

# Defaults for the Black-Litterman model
DEFAULT_RISK_AVERSION = 2.5
DEFAULT_TAU = 0.025
DEFAULT_VIEW_CONFIDENCE = 0.5

# Fixed precision used by result and frontier serialization
SERIALIZATION_PRECISION = 8
