"""Exception types raised by tabcluster."""


class TabClusterError(Exception):
    """Base class for tabcluster errors."""


class ConfigurationError(TabClusterError, ValueError):
    """Invalid configuration value or unknown setting."""


class OracleError(TabClusterError):
    """An optional oracle was unavailable or returned something unusable.

    Always recoverable through the deterministic fallback, unless strict
    oracle mode is on.
    """

    def __init__(self, oracle: str, message: str) -> None:
        self.oracle = oracle
        super().__init__(f"[{oracle}] {message}")


class OracleTimeout(OracleError):
    """The oracle did not answer in time."""


class InvariantViolation(TabClusterError):
    """A programming error: score out of range, index out of bounds."""


class DocumentLoadError(TabClusterError):
    """A tab export that cannot be read or parsed at all."""


class EvaluationInputError(TabClusterError, ValueError):
    """A gold scenario without any usable entries."""
