# src/tkengine/errors.py
"""
Error taxonomy for parameterization and solving.

Everything fatal derives from TKError so callers can catch the whole family.
Clamps are not errors: they go through `warn_clamped`, which both logs and
emits a NumericalWarning.
"""
import logging
import warnings

logger = logging.getLogger(__name__)


class TKError(Exception):
    """Base class for all tkengine failures."""


class IdentityError(TKError):
    """The chemical could not be resolved to a single table row."""


class ChemicalNotFound(IdentityError, LookupError):
    pass


class AmbiguousIdentity(IdentityError):
    pass


class ApplicabilityError(TKError):
    """The chemical/species/model combination is outside the model's domain."""

    def __init__(self, message: str, *, model: str | None = None, reason: str | None = None):
        super().__init__(message)
        self.model = model
        self.reason = reason


class MissingParameterError(TKError, KeyError):
    """A required input for the requested computation is absent."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable.
        return str(self.args[0]) if self.args else ""


class MissingProperty(MissingParameterError):
    """
    A store lookup came back empty.

    reason : "absent" when the table has a slot for the value but no measurement,
             "not_applicable" when the table has no slot at all for that species.
    """

    def __init__(self, message: str, *, name: str, reason: str = "absent"):
        super().__init__(message)
        self.name = name
        self.reason = reason


class UnknownSpecies(TKError, LookupError):
    pass


class DomainError(TKError, ValueError):
    """A computed or supplied quantity is physically invalid for further use."""


class IntegrationError(TKError, RuntimeError):
    """The ODE integrator failed to complete a segment."""


class NumericalWarning(UserWarning):
    """A value was clamped into its valid range."""


def warn_clamped(message: str) -> None:
    logger.warning(message)
    warnings.warn(message, NumericalWarning, stacklevel=3)
