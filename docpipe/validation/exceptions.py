class ValidatorError(Exception):
    """Raised when the validator cannot reach a verdict."""
