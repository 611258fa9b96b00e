"""Manifold variable kinds and measurement factors."""
