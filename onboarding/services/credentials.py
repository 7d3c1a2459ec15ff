"""
Edit (magic-link) credentials.

A vendor's edit token is a bare bearer secret granting owner-level write access
to that one vendor record. Everything that knows how the secret is stored lives
here, so expiry or rotation can be introduced without touching the
confirmation flow:

- ``edit_token_hash`` (peppered SHA-256) is used for lookups;
- ``edit_token_sealed`` (Fernet) lets a replayed confirmation hand back the
  original token instead of minting a second one.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.crypto import decrypt_text, encrypt_text
from onboarding.core.security import hash_token
from onboarding.models.vendor import Vendor
from onboarding.services.tokens import issue_edit_token


@dataclass(frozen=True)
class EditCredential:
    plain: str
    hashed: str
    sealed: str


def issue_edit_credential() -> EditCredential:
    plain = issue_edit_token()
    return EditCredential(plain=plain, hashed=hash_token(plain), sealed=encrypt_text(plain))


def attach_credential(vendor: Vendor, credential: EditCredential) -> None:
    vendor.edit_token_hash = credential.hashed
    vendor.edit_token_sealed = credential.sealed


def reveal_edit_token(vendor: Vendor) -> str:
    return decrypt_text(vendor.edit_token_sealed)


async def find_vendor_by_edit_token(db: AsyncSession, token: str) -> Vendor | None:
    if not token:
        return None
    stmt = select(Vendor).where(Vendor.edit_token_hash == hash_token(token))
    return (await db.execute(stmt)).scalar_one_or_none()
