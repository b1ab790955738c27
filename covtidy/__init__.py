"""
covtidy package
===============

Tidy-data analysis of the JHU CSSE COVID-19 time series.

- The CLI entry point is in `covtidy/cli.py`.
- The stage sequence (reshape, join, filter, aggregate, model) is in `covtidy/pipeline.py`.
- Dataset loading is in `covtidy/loader.py`.
"""

__version__ = '0.1.0'
