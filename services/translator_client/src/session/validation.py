"""Client-side field validation run before any auth request is dispatched."""

import re

from ..exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


def validate_email(email: str) -> str:
    """Return the normalized email or raise ValidationError."""
    cleaned = email.strip()
    if not cleaned:
        raise ValidationError("Email is required", field="email")
    if not EMAIL_PATTERN.match(cleaned):
        raise ValidationError("Please enter a valid email address", field="email")
    return cleaned.lower()


def validate_password(password: str) -> str:
    if not password:
        raise ValidationError("Password is required", field="password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            field="password",
        )
    return password


def validate_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Name is required", field="name")
    return cleaned


def validate_terms(accepted: bool) -> None:
    if not accepted:
        raise ValidationError("You must accept the terms of service", field="terms")
