"""
Custom exception classes for the mileage rating engine.

Every error carries a ``status_code`` so that the calling web layer can
translate it into a response without inspecting messages.
"""


class RatingError(Exception):
    """Base class for all errors raised by the rating engine and its services."""

    status_code = 500

    def __init__(self, message: str = "Error: rating failed") -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class InvalidInputError(RatingError):
    """Raised when a calculation receives non-positive limits or malformed customer facts."""

    status_code = 422

    def __init__(self, message: str = "Error: invalid input") -> None:
        super().__init__(message)


class ValidationError(RatingError):
    """Raised when caller-supplied contract data fails validation (e.g. end mileage < start mileage)."""

    status_code = 422

    def __init__(self, message: str = "Error: validation failed") -> None:
        super().__init__(message)


class ContractNotFoundError(RatingError):
    """Raised when a contract ID cannot be found for the requesting company."""

    status_code = 404

    def __init__(self, message: str = "Error: contract not found") -> None:
        super().__init__(message)


class CustomerNotFoundError(RatingError):
    """Raised when a customer ID cannot be found for the requesting company."""

    status_code = 404

    def __init__(self, message: str = "Error: customer not found") -> None:
        super().__init__(message)


class VehicleNotFoundError(RatingError):
    """Raised when the vehicle attached to a contract is missing."""

    status_code = 404

    def __init__(self, message: str = "Error: vehicle not found") -> None:
        super().__init__(message)


class ContractStateError(RatingError):
    """Raised when a contract is not in a state that allows the requested operation."""

    status_code = 409

    def __init__(self, message: str = "Error: contract is not active") -> None:
        super().__init__(message)


class ConfigurationError(RatingError):
    """Raised when a tier table or engine setting is inconsistent."""

    def __init__(self, message: str = "Error: invalid rating configuration") -> None:
        super().__init__(message)
