"""Estimator component tests."""
