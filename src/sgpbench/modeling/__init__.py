"""Forecasting backends, scoring and sensitivity sweeps."""
