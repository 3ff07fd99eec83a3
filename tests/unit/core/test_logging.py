"""Unit tests for contextual loggers."""

import logging

from nfs_supervisor.core.logging import ContextualLogger, LoggerConfigurator


class TestContextualLogger:
    def test_renders_dimensions(self):
        log = LoggerConfigurator.configure_logger("nfs_supervisor.test", {"component": "dbus"})

        msg, kwargs = log.process("started", {})

        assert msg == "started"
        assert kwargs["extra"]["context"] == " [component=dbus]"

    def test_no_dimensions_renders_nothing(self):
        log = LoggerConfigurator.configure_logger("nfs_supervisor.test")

        _, kwargs = log.process("started", {})

        assert kwargs["extra"]["context"] == ""

    def test_with_context_merges_dimensions(self):
        log = ContextualLogger(logging.getLogger("nfs_supervisor.test"), {"component": "metrics"})

        child = log.with_context(clientip="10.0.0.1", component="clients")

        assert child.dimensions == {"component": "clients", "clientip": "10.0.0.1"}
        assert log.dimensions == {"component": "metrics"}
        assert child.logger is log.logger


class TestLoggerConfigurator:
    def test_configure_root_sets_level(self):
        LoggerConfigurator.configure_root("debug")
        try:
            assert logging.getLogger("nfs_supervisor").level == logging.DEBUG
        finally:
            LoggerConfigurator.configure_root("INFO")

    def test_repeated_configuration_adds_no_handlers(self):
        LoggerConfigurator.configure_root("INFO")
        root = logging.getLogger("nfs_supervisor")
        before = list(root.handlers)

        LoggerConfigurator.configure_root("INFO")

        assert root.handlers == before
        # Capture handlers installed by the test runner subclass StreamHandler.
        assert [type(h) for h in root.handlers].count(logging.StreamHandler) == 1
