"""Run records and reporting.

This package holds the per-run report, the degradation protocol for missing
artifacts and the end-of-run output summary.
"""
