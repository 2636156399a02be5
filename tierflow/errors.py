# tierflow/errors.py
"""Exceptions raised by tierflow. The CLI turns any of these into exit code 1."""


class TierflowError(Exception):
    """Base class for every error tierflow reports to the operator."""


class StackConfigError(TierflowError):
    """stack.toml is malformed or describes an impossible stack."""


class ManifestError(TierflowError):
    """A manifest or build file could not be read or parsed."""


class CommandError(TierflowError):
    """An external tool (docker, kubectl) failed or is missing."""

    def __init__(self, message, returncode=None):
        super().__init__(message)
        self.returncode = returncode
