"""
Portfolio Allocation Engine

Mean-variance (Markowitz) and Black-Litterman portfolio optimization on top of
a small Cholesky-based linear algebra layer, with constraint handling and
efficient frontier export.
"""

__version__ = "0.1.0"
__author__ = "Portfolio Optimization Team"
