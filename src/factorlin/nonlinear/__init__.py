"""Nonlinear factors and graph-level linearization."""
