"""
Account Service: tenant records and tenant-scoped store access

WHY: Every record lives under exactly one account. Callers resolve an
account id (from whatever identity layer they use) into a RecordStore here,
so inactive or unknown accounts never reach the data services.

USAGE:
    from threadcount.services.account_service import store_for_account

    store = store_for_account(account_id)
    create_product(store, {...}, initial_stock=10)
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Account
from ..validation import NotFoundError, ValidationError, to_bool
from .record_store import SqlRecordStore

ACCOUNT_MUTABLE_FIELDS = {"name", "email", "is_active"}


def _clean_name(name) -> str:
    name = (name or "").strip()
    if len(name) < 2:
        raise ValidationError("name must be at least 2 characters")
    if len(name) > 255:
        raise ValidationError("name exceeds max length 255")
    return name


def _clean_email(email) -> str:
    email = (email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError("email must be a valid address")
    return email


def create_account(*, name: str, email: str) -> Account:
    """
    Create a new tenant.

    Raises:
        ValidationError: bad name/email or email already registered
    """
    account = Account(name=_clean_name(name), email=_clean_email(email), is_active=True)
    db.session.add(account)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("An account with this email already exists")

    current_app.logger.info("Created account %s (%s)", account.id, account.email)
    return account


def get_account(account_id: int) -> Account | None:
    return db.session.query(Account).filter_by(id=account_id).first()


def list_accounts(include_inactive: bool = False) -> list[Account]:
    query = db.session.query(Account)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Account.id.asc()).all()


def update_account(account_id: int, patch: dict) -> Account | None:
    """
    Update account settings (display name, email, active flag).

    Returns:
        Updated Account, or None if not found
    """
    account = get_account(account_id)
    if account is None:
        return None

    for k in patch.keys():
        if k not in ACCOUNT_MUTABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {k}")

    # Validate the whole patch before the attached row is touched
    clean = {}
    if "name" in patch:
        clean["name"] = _clean_name(patch["name"])
    if "email" in patch:
        clean["email"] = _clean_email(patch["email"])
    if "is_active" in patch:
        clean["is_active"] = to_bool(patch["is_active"], "is_active")

    for key, value in clean.items():
        setattr(account, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("An account with this email already exists")
    return account


def store_for_account(account_id: int) -> SqlRecordStore:
    """
    Open a RecordStore for an active account.

    Raises:
        NotFoundError: unknown or inactive account
    """
    account = get_account(account_id)
    if account is None or not account.is_active:
        raise NotFoundError("Account not found")
    return SqlRecordStore(account.id)
