"""Exceptions raised by energyledger."""


class EnergyLedgerError(Exception):
    """Base class for all energyledger errors."""


class InvalidInputError(EnergyLedgerError):
    """Input could not be read or parsed at all."""


class ServiceError(EnergyLedgerError):
    """An external collaborator failed or returned an unusable reply."""
