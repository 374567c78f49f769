"""BAPP reporting-period engine."""
