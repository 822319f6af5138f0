"""
Field Validator — normalizes and validates single profile field values.

Behavioral Contract:
- Null or empty input is always valid and normalizes to None.
- Phone fields normalize to "+91 XXXXX XXXXX"; email fields to lowercase.
- Keys without a registered validator pass through unchanged.
- Validating an already-normalized value returns it unchanged.
"""

import re
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

PHONE_FIELDS = frozenset({
    "primary_mobile",
    "secondary_mobile",
    "alternate_phone",
    "emergency_contact_phone",
})
EMAIL_FIELDS = frozenset({"email_primary", "email_secondary"})

_PHONE_SEPARATORS = re.compile(r"[\s\-()]")
_NON_DIGITS = re.compile(r"\D")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class FieldValidation(BaseModel):
    valid: bool
    value: Any = None
    error: Optional[str] = None


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def validate_phone_number(value: Any) -> FieldValidation:
    """
    Validate and normalize an Indian mobile number.

    Accepts 9876543210, 09876543210, 919876543210, +91 98765 43210 and
    0919876543210, all normalizing to +91 98765 43210.
    """
    if _is_empty(value):
        return FieldValidation(valid=True, value=None)

    cleaned = _PHONE_SEPARATORS.sub("", str(value).strip())
    digits = _NON_DIGITS.sub("", cleaned)

    if len(digits) == 10:
        ten_digits = digits
    elif len(digits) == 11 and digits.startswith("0"):
        ten_digits = digits[1:]
    elif len(digits) == 12 and digits.startswith("91"):
        ten_digits = digits[2:]
    elif len(digits) == 13 and digits.startswith("091"):
        ten_digits = digits[3:]
    else:
        return FieldValidation(
            valid=False,
            error="Phone number must be 10 digits (with optional +91 prefix)",
        )

    if ten_digits[0] not in "6789":
        return FieldValidation(
            valid=False,
            error="Indian mobile numbers must start with 6, 7, 8, or 9",
        )

    return FieldValidation(valid=True, value=f"+91 {ten_digits[:5]} {ten_digits[5:]}")


def validate_email(value: Any) -> FieldValidation:
    """Trim, lowercase and shape-check an email address."""
    if _is_empty(value):
        return FieldValidation(valid=True, value=None)

    normalized = str(value).strip().lower()
    if not _EMAIL.match(normalized):
        return FieldValidation(valid=False, error="Invalid email format")
    return FieldValidation(valid=True, value=normalized)


def is_phone_field(field_key: str) -> bool:
    return field_key in PHONE_FIELDS


def is_email_field(field_key: str) -> bool:
    return field_key in EMAIL_FIELDS


def is_contact_field(field_key: str) -> bool:
    return is_phone_field(field_key) or is_email_field(field_key)


def validate_contact_field(field_key: str, value: Any) -> Optional[FieldValidation]:
    """Validate a phone or email field. Returns None for non-contact keys."""
    if is_phone_field(field_key):
        return validate_phone_number(value)
    if is_email_field(field_key):
        return validate_email(value)
    return None


ValueValidator = Callable[[Any], FieldValidation]


class FieldValidator:
    """
    Per-key validator registry. Contact fields are registered by default;
    other keys can be plugged in without touching the apply path.
    """

    def __init__(self):
        self._validators: Dict[str, ValueValidator] = {}
        for key in PHONE_FIELDS:
            self._validators[key] = validate_phone_number
        for key in EMAIL_FIELDS:
            self._validators[key] = validate_email

    def register(self, field_key: str, validator: ValueValidator) -> None:
        """Register (or replace) the validator for a field key."""
        self._validators[field_key] = validator

    def has_validator(self, field_key: str) -> bool:
        return field_key in self._validators

    def validate(self, field_key: str, raw_value: Any) -> FieldValidation:
        if _is_empty(raw_value):
            return FieldValidation(valid=True, value=None)

        validator = self._validators.get(field_key)
        if validator is None:
            return FieldValidation(valid=True, value=raw_value)
        return validator(raw_value)
