"""Estimating web API."""
