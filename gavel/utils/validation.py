"""
Input Validation - Sanitization of values entering the auction engine.

Checks identities, amounts, durations and descriptions before they touch
auction state. Each validator returns (is_valid, error_message) so callers
decide which error to raise.
"""

from typing import Any, Tuple

# =============================================================================
# Constants
# =============================================================================

MAX_IDENTITY_LENGTH = 256
MAX_DESCRIPTION_LENGTH = 4096

# Amounts are unsigned 256-bit value units
MIN_AMOUNT = 0
MAX_AMOUNT = 2**256 - 1

# Durations are unsigned seconds, capped at 10 years
MAX_DURATION = 10 * 365 * 24 * 60 * 60


# =============================================================================
# Validation Functions
# =============================================================================


def validate_identity(identity: Any, name: str = "identity") -> Tuple[bool, str]:
    """
    Validate a caller/beneficiary identity.

    Identities are opaque non-empty strings (an address, an account id).

    Args:
        identity: Value to validate
        name: Field name for error messages

    Returns:
        (is_valid, error_message)
    """
    if identity is None:
        return False, f"{name} must not be null"

    if not isinstance(identity, str):
        return False, f"{name} must be str, got {type(identity).__name__}"

    if not identity.strip():
        return False, f"{name} must not be empty"

    if len(identity) > MAX_IDENTITY_LENGTH:
        return False, f"{name} exceeds max length {MAX_IDENTITY_LENGTH}, got {len(identity)}"

    return True, ""


def validate_amount(
    value: Any,
    name: str = "amount",
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate an unsigned integer amount within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass, but True is not an amount
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_duration(duration: Any) -> Tuple[bool, str]:
    """Validate an auction duration in seconds (strictly positive)."""
    return validate_amount(duration, "duration", min_val=1, max_val=MAX_DURATION)


def validate_description(description: Any) -> Tuple[bool, str]:
    """Validate an item description."""
    if not isinstance(description, str):
        return False, f"description must be str, got {type(description).__name__}"

    if not description.strip():
        return False, "description must not be empty"

    if len(description) > MAX_DESCRIPTION_LENGTH:
        return False, f"description exceeds max length {MAX_DESCRIPTION_LENGTH}, got {len(description)}"

    return True, ""
