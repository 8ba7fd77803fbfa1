"""Account signup, login, and profile/PIN management."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from storda.config import settings
from storda.errors import AccountExistsError, AuthenticationError, ValidationError
from storda.models.account import Account
from storda.services import ledger_service
from storda.utils.security import (
    create_access_token,
    hash_password,
    hash_pin,
    verify_password,
)
from storda.utils.validators import (
    PHONE_RE,
    normalize_phone,
    validate_email,
    validate_nin,
    validate_pin,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _clean_phone(phone: str | None) -> str | None:
    if not phone:
        return None
    phone = normalize_phone(phone)
    if not PHONE_RE.match(phone):
        raise ValidationError("Enter a valid phone number", field="phone")
    return phone


def _check_unique(session: Session, email: str | None, phone: str | None, exclude_id: str | None = None):
    if email:
        existing = session.exec(select(Account).where(Account.email == email)).first()
        if existing and existing.id != exclude_id:
            raise AccountExistsError("An account with this email already exists", field="email")
    if phone:
        existing = session.exec(select(Account).where(Account.phone == phone)).first()
        if existing and existing.id != exclude_id:
            raise AccountExistsError("An account with this phone number already exists", field="phone")


def signup(
    email: str,
    password: str,
    full_name: str,
    pin: str,
    session: Session,
    phone: str | None = None,
    nin: str | None = None,
) -> dict:
    """Create an account with its opening points balance.

    Returns the account ID and an access token.
    """
    email = validate_email(email)
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password")
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("Full name is required", field="full_name")
    pin = validate_pin(pin, settings.pin_length)
    phone = _clean_phone(phone)
    nin = validate_nin(nin) if nin else None

    _check_unique(session, email, phone)

    account = Account(
        email=email,
        phone=phone,
        full_name=full_name,
        nin=nin,
        password_hash=hash_password(password),
        pin_hash=hash_pin(pin),
    )
    try:
        session.add(account)
        session.flush()
        if settings.initial_points > 0:
            ledger_service.credit(account.id, settings.initial_points, session, memo="welcome points")
        session.commit()
    except IntegrityError:
        session.rollback()
        raise AccountExistsError("An account with this email or phone already exists", field="email")
    session.refresh(account)

    logger.info("Account %s created", account.id)
    return {
        "account_id": account.id,
        "access_token": create_access_token(account.id),
    }


def login(email: str, password: str, session: Session) -> dict:
    email = (email or "").strip().lower()
    account = session.exec(select(Account).where(Account.email == email)).first()
    if not account or not verify_password(password or "", account.password_hash):
        raise AuthenticationError("Invalid email or password")

    return {
        "account_id": account.id,
        "access_token": create_access_token(account.id),
    }


def update_profile(
    account: Account,
    session: Session,
    full_name: str | None = None,
    phone: str | None = None,
    nin: str | None = None,
) -> Account:
    if full_name is not None:
        full_name = full_name.strip()
        if not full_name:
            raise ValidationError("Full name cannot be empty", field="full_name")
        account.full_name = full_name
    if phone is not None:
        cleaned = _clean_phone(phone)
        _check_unique(session, None, cleaned, exclude_id=account.id)
        account.phone = cleaned
    if nin is not None:
        account.nin = validate_nin(nin) if nin else None

    session.add(account)
    session.commit()
    session.refresh(account)
    return account


def change_pin(account: Account, password: str, new_pin: str, session: Session) -> None:
    """Replace the transaction PIN. The password stands in for the old PIN."""
    if not verify_password(password or "", account.password_hash):
        raise AuthenticationError("Incorrect password", field="password")
    account.pin_hash = hash_pin(validate_pin(new_pin, settings.pin_length, field="new_pin"))
    session.add(account)
    session.commit()
    logger.info("PIN changed for %s", account.id)


NOTIFICATION_FIELDS = (
    "notify_push",
    "notify_email",
    "notify_sms",
    "alert_device",
    "alert_security",
    "alert_payment",
    "alert_promotional",
)


def notification_settings(account: Account) -> dict:
    return {name: getattr(account, name) for name in NOTIFICATION_FIELDS}


def update_notification_settings(account: Account, changes: dict, session: Session) -> dict:
    """Apply the given switches; keys left out or set to None are unchanged."""
    for name, value in changes.items():
        if name not in NOTIFICATION_FIELDS:
            raise ValidationError(f"Unknown notification setting: {name}", field=name)
        if value is not None:
            setattr(account, name, bool(value))

    session.add(account)
    session.commit()
    session.refresh(account)
    return notification_settings(account)
