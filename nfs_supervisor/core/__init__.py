"""Supervisor core: processes, readiness, logging, configuration."""
