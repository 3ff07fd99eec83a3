"""HTTP surface: index, health and metrics endpoints."""
