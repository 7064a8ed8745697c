"""Reporting and export for estimating records."""
