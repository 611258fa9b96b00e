"""Noise models and the linear (Jacobian) factor graph."""
