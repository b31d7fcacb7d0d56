"""
Domain Types
Validated input types for subscribers and idempotency keys
"""

from pydantic import BaseModel, EmailStr, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from newsletter.errors import ValidationError

FORBIDDEN_NAME_CHARACTERS = set('/()"<>\\{}')
MAX_NAME_LENGTH = 256
MAX_IDEMPOTENCY_KEY_LENGTH = 50

_email_adapter = TypeAdapter(EmailStr)


def parse_subscriber_email(email: str) -> str:
    """
    Validate an email address.

    Raises:
        ValidationError: if the address is not syntactically valid
    """
    try:
        return _email_adapter.validate_python(email)
    except PydanticValidationError as e:
        raise ValidationError(f"{email} is not a valid subscriber email.") from e


def parse_subscriber_name(name: str) -> str:
    """
    Validate a subscriber display name.

    Raises:
        ValidationError: if the name is blank, too long or contains forbidden characters
    """
    if not name or not name.strip():
        raise ValidationError("Subscriber name must not be empty.")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Subscriber name must be at most {MAX_NAME_LENGTH} characters.")
    if any(c in FORBIDDEN_NAME_CHARACTERS for c in name):
        raise ValidationError(f"{name} is not a valid subscriber name.")
    return name


class NewSubscriber(BaseModel):
    """A subscriber whose name and email have passed validation."""

    name: str
    email: str

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return parse_subscriber_name(value)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return parse_subscriber_email(value)

    @classmethod
    def parse(cls, name: str, email: str) -> "NewSubscriber":
        """
        Build a NewSubscriber from raw form values.

        Raises:
            ValidationError: first failing field's message
        """
        return cls(name=name, email=email)


def parse_idempotency_key(key: str) -> str:
    """
    Validate a client supplied idempotency key.

    Raises:
        ValidationError: if the key is empty or 50 characters or longer
    """
    if not key:
        raise ValidationError("The idempotency key cannot be empty.")
    if len(key) >= MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(
            f"The idempotency key must be shorter than {MAX_IDEMPOTENCY_KEY_LENGTH} characters."
        )
    return key
