from __future__ import annotations


class EMIBDError(Exception):
    """Base class for failures raised by the EMIBD9 adapter."""


class ConfigurationError(EMIBDError, ValueError):
    """Invalid or missing run parameters."""


class DependencyMissingError(EMIBDError, FileNotFoundError):
    """A required EMIBD9 executable or shared library is absent."""

    def __init__(self, install_dir, missing) -> None:
        self.install_dir = install_dir
        self.missing = list(missing)
        super().__init__(
            f"Cannot find {', '.join(self.missing)} in the EMIBD9 folder {install_dir}"
        )


class EncodingError(EMIBDError, ValueError):
    """Genotype matrix holds values the estimator cannot represent."""


class ParseError(EMIBDError, ValueError):
    """Report is missing its anchors or has malformed table rows."""


class EstimatorTimeoutError(EMIBDError, TimeoutError):
    """The estimator exceeded its wall-clock budget and was killed."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"EMIBD9 did not finish within {timeout:g} seconds")
