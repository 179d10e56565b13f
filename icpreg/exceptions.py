"""Errors raised by the registration engine."""


class IcpError(Exception):
    """Base class for all registration errors."""


class ConfigurationError(IcpError, ValueError):
    """A required input or parameter is missing or invalid.

    Raised before any iteration is performed.
    """


class RegistrationError(IcpError, RuntimeError):
    """The optimization reached a degenerate state and stopped."""


class CorrespondenceStarvation(RegistrationError):
    """Too few correspondences survived the distance gate to solve for the twist."""


class NumericalSingularity(RegistrationError):
    """The weighted normal equations are singular or ill-conditioned."""
