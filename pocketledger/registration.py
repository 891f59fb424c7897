"""
Identity Registration

Creates a person together with everything they need to use the ledger:
the Identity, its Credential (hashed password and PIN) and a zero-balance
Account. All three are inserted in ONE storage commit, so there is never
an identity without an account or without credentials.
"""

import secrets
from datetime import date
from typing import Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from pocketledger.audit import AuditLogger
from pocketledger.config import SecuritySettings, get_settings
from pocketledger.errors import (
    DuplicateCredentialError,
    NotAdultError,
    RegistrationError,
)
from pocketledger.models.account import Account
from pocketledger.models.identity import (
    Credential,
    Identity,
    RegistrationRequest,
    completed_years,
)
from pocketledger.services.security import SecretHasher
from pocketledger.services.storage import (
    LedgerStorageInterface,
    UniqueConstraintError,
    UnitOfWork,
)


PUBLIC_CODE_DIGITS = 10
MAX_PUBLIC_CODE_ATTEMPTS = 5


def generate_public_code() -> str:
    """Random 10-digit code, zero padded."""
    return f"{secrets.randbelow(10 ** PUBLIC_CODE_DIGITS):0{PUBLIC_CODE_DIGITS}d}"


class IdentityRegistry:
    """Registers new identities."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        hasher: Optional[SecretHasher] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[SecuritySettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().security
        self._hasher = hasher or SecretHasher(self._settings)
        self._audit_logger = audit_logger

    async def register(
        self,
        request: Union[RegistrationRequest, dict],
        correlation_id: Optional[UUID] = None,
        today: Optional[date] = None,
    ) -> Identity:
        """
        Register a new identity.

        Args:
            request: Validated request, or raw fields to validate
            today: Reference date for the age check (defaults to today)

        Raises:
            RegistrationError: Input failed validation
            NotAdultError: Younger than the configured minimum age
            DuplicateCredentialError: Email or phone number already registered
        """
        if not isinstance(request, RegistrationRequest):
            request = self._parse(request)

        identity_fields = dict(
            name=request.name,
            last_name=request.last_name,
            birth_date=request.birth_date,
        )
        age = completed_years(request.birth_date, today or date.today())
        if age < self._settings.minimum_age_years:
            raise NotAdultError(self._settings.minimum_age_years)

        password_hash = self._hasher.hash(request.password)
        pin_hash = self._hasher.hash(request.pin_code)

        for _ in range(MAX_PUBLIC_CODE_ATTEMPTS):
            identity = Identity(public_code=generate_public_code(), **identity_fields)
            unit = UnitOfWork(
                new_identity=identity,
                new_credential=Credential(
                    identity_id=identity.id,
                    email=request.email,
                    phone_number=request.phone_number,
                    password_hash=password_hash,
                    pin_hash=pin_hash,
                ),
                new_account=Account(owner_id=identity.id),
            )
            try:
                await self._storage.commit(unit)
            except UniqueConstraintError as e:
                if e.field == "public_code":
                    continue
                if e.field in ("email", "phone_number"):
                    raise DuplicateCredentialError(e.field) from e
                raise
            break
        else:
            raise RegistrationError(
                "Could not allocate a unique public code",
                "PUBLIC_CODE_EXHAUSTED",
            )

        if self._audit_logger:
            await self._audit_logger.log_identity_registered(
                identity_id=identity.id,
                public_code=identity.public_code,
                correlation_id=correlation_id,
            )
        return identity

    @staticmethod
    def _parse(data: dict) -> RegistrationRequest:
        try:
            return RegistrationRequest(**data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "request"
            raise RegistrationError(f"{field}: {first['msg']}") from e
