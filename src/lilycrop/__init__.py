"""
lilycrop package.

Why this file exists:
- It marks this folder as a package so `python -m lilycrop` works after install.
- It keeps import side effects minimal; the CLI lives in cli.py.
"""

__all__ = ["__version__"]

# Keep a simple version string for --version and run reports.
__version__ = "0.2.0"
