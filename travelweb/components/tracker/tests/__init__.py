"""Tracker component tests."""
