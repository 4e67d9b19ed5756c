"""
Setup script for the Portfolio Allocation Engine.
"""

import re
from setuptools import setup
from pathlib import Path

here = Path(__file__).parent

# Read README file
readme_file = here / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements
requirements_file = here / "requirements.txt"
requirements = []
if requirements_file.exists():
    with open(requirements_file, 'r') as f:
        requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Single-source the version from src/__init__.py
version = re.search(
    r'^__version__ = "([^"]+)"',
    (here / "src" / "__init__.py").read_text(encoding="utf-8"),
    re.MULTILINE,
).group(1)

setup(
    name="allocation-engine",
    version=version,
    description="Markowitz and Black-Litterman portfolio allocation with a Cholesky-based linear algebra core",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Portfolio Optimization Team",
    author_email="team@example.com",
    package_dir={"": "src"},
    py_modules=[
        "black_litterman_optimizer",
        "config",
        "constants",
        "constraints",
        "data_io",
        "efficient_frontier",
        "interfaces",
        "linear_algebra",
        "logging_config",
        "main",
        "market_inputs",
        "markowitz_optimizer",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=6.2.0",
        ],
        "dev": [
            "pytest>=6.2.0",
            "pytest-cov>=3.0.0",
            "pytest-mock>=3.6.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.910",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Financial and Insurance Industry",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Office/Business :: Financial :: Investment",
        "Topic :: Scientific/Engineering :: Mathematics",
    ],
    keywords="portfolio optimization, markowitz, black-litterman, efficient frontier, quantitative finance",
    entry_points={
        "console_scripts": [
            "allocation-engine=main:main",
        ],
    },
)
