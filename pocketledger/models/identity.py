"""
Identity Models

An Identity is a registered person. It owns exactly one Account,
one Credential record and any number of Savings Goals.

DESIGN DECISION: The "current caller" is never global state.
Flows receive the resolved Identity explicitly and turn it into an
AuthContext through the access gate.
"""

import re
from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pocketledger.models.account import Account


PIN_PATTERN = re.compile(r"^\d{4,6}$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def completed_years(birth_date: date, today: date) -> int:
    """Completed years between ``birth_date`` and ``today``."""
    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


class SecretKind(str, Enum):
    """Which stored secret to re-validate."""
    PIN = "pin"
    PASSWORD = "password"


class Identity(BaseModel):
    """
    A registered person.

    The public code is what other people use to send money to this identity.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Internal identity ID"
    )
    name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    birth_date: date
    public_code: str = Field(
        ...,
        min_length=1,
        max_length=20,
        description="Globally unique code shared with others to receive transfers"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.last_name}"

    def age_on(self, today: date) -> int:
        return completed_years(self.birth_date, today)


class Credential(BaseModel):
    """
    Login and transaction secrets for an identity.

    CRITICAL: Only salted one-way hashes are stored here, never plaintext.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    identity_id: UUID
    email: str = Field(..., max_length=254)
    phone_number: str = Field(..., max_length=15)
    password_hash: str = Field(..., min_length=1)
    pin_hash: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def hash_for(self, kind: SecretKind) -> str:
        return self.pin_hash if kind == SecretKind.PIN else self.password_hash


class AuthContext(BaseModel):
    """Validated caller context: who is calling and which account they own."""

    identity: Identity
    account: Account

    @property
    def identity_id(self) -> UUID:
        return self.identity.id

    @property
    def account_id(self) -> UUID:
        return self.account.id

    @property
    def public_code(self) -> str:
        return self.identity.public_code


class RegistrationRequest(BaseModel):
    """Input for creating a new identity with its credentials and account."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    birth_date: date
    email: str = Field(..., max_length=254)
    phone_number: str
    password: str = Field(..., min_length=8, max_length=100)
    password_confirmation: str
    pin_code: str
    pin_code_confirmation: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v.lower()

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, v: str) -> str:
        if not PHONE_PATTERN.match(v):
            raise ValueError("Invalid phone number format")
        return v

    @field_validator('pin_code')
    @classmethod
    def validate_pin(cls, v: str) -> str:
        if not PIN_PATTERN.match(v):
            raise ValueError("PIN code must be 4-6 digits")
        return v

    @field_validator('birth_date')
    @classmethod
    def validate_birth_date(cls, v: date) -> date:
        if v >= date.today():
            raise ValueError("Birth date must be in the past")
        return v

    @model_validator(mode='after')
    def validate_confirmations(self) -> 'RegistrationRequest':
        if self.password != self.password_confirmation:
            raise ValueError("Passwords do not match")
        if self.pin_code != self.pin_code_confirmation:
            raise ValueError("PIN codes do not match")
        return self
