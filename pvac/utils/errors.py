# -----------------------------
# Error Taxonomy
# -----------------------------
class PvacError(Exception):
    """Base class for errors raised by the PVAC toolkit."""


class FormatError(PvacError, ValueError):
    """Raised when a key or ciphertext stream is malformed, truncated or carries the wrong header."""


class DomainError(PvacError, ArithmeticError):
    """Raised when a field operation has no result, such as the inverse of zero."""
