"""Exception taxonomy for the supervisor.

Startup errors (``StartError``, ``ReadinessTimeoutError``) are fatal.
Steady-state errors (``SubprocessExitError``) trigger shutdown rather than
propagate.  ``ProbeError`` means "not ready yet" to the readiness gate.
"""


class SupervisorError(Exception):
    """Base class for all supervisor errors."""


class ConfigurationError(SupervisorError):
    """Raised when environment configuration is missing or invalid."""


class StartError(SupervisorError):
    """Raised when a supervised component cannot be launched."""

    def __init__(self, name: str, message: str):
        """Initialize the error.

        Args:
            name: Name of the component that failed to start.
            message: Description of the failure.
        """
        self.name = name
        super().__init__(f"failed to start {name}: {message}")


class ReadinessTimeoutError(SupervisorError, TimeoutError):
    """Raised when a readiness probe does not succeed before its deadline."""

    def __init__(self, name: str, elapsed: float):
        """Initialize the error.

        Args:
            name: Name of the dependency that never became ready.
            elapsed: Seconds spent waiting before the deadline expired.
        """
        self.name = name
        self.elapsed = elapsed
        super().__init__(f"{name} not ready after {elapsed:.2f}s: deadline exceeded")


class CancellationError(SupervisorError):
    """Delivered to heartbeat watchers when monitoring is cancelled."""


class SubprocessExitError(SupervisorError):
    """A supervised process terminated abnormally."""

    def __init__(self, name: str, returncode: int):
        """Initialize the error.

        Args:
            name: Name of the process that exited.
            returncode: Exit status; negative values are the terminating signal.
        """
        self.name = name
        self.returncode = returncode
        if returncode < 0:
            detail = f"killed by signal {-returncode}"
        else:
            detail = f"exit status {returncode}"
        super().__init__(f"{name} exited: {detail}")


class ProbeError(SupervisorError):
    """A readiness or status probe could not reach its dependency."""


class StatsDecodeError(ProbeError):
    """A bus reply did not have the expected shape."""


class BusCallError(SupervisorError):
    """A method call on the bus returned an error reply."""

    def __init__(self, member: str, error_name: str, detail: str = ""):
        """Initialize the error.

        Args:
            member: The method that was called.
            error_name: The error name carried by the reply.
            detail: Optional error text from the reply body.
        """
        self.member = member
        self.error_name = error_name
        super().__init__(f"{member} failed: {error_name} {detail}".rstrip())
