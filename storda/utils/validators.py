"""Input validation patterns for device and account fields."""

import re

from storda.errors import InvalidImeiError, ValidationError
from storda.models.enums import ContactChannel

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")
IMEI_RE = re.compile(r"^[0-9]{15}$")
MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})$")
NIN_RE = re.compile(r"^[0-9]{11}$")
DEVICE_ID_RE = re.compile(r"^STD-\d{6}$", re.IGNORECASE)


def normalize_phone(phone: str) -> str:
    """Strip spaces and dashes: '+234 800-555 1234' -> '+2348005551234'."""
    return re.sub(r"[\s\-()]", "", phone)


def validate_imei(imei: str) -> str:
    imei = (imei or "").strip()
    if not IMEI_RE.match(imei):
        raise InvalidImeiError()
    return imei


def validate_mac(mac: str | None) -> str | None:
    if not mac:
        return None
    mac = mac.strip()
    if not MAC_RE.match(mac):
        raise ValidationError("MAC address must look like AA:BB:CC:DD:EE:FF", field="mac_address")
    return mac.upper().replace("-", ":")


def validate_nin(nin: str | None, field: str = "nin") -> str:
    nin = (nin or "").strip()
    if not NIN_RE.match(nin):
        raise ValidationError("NIN must be exactly 11 digits", field=field)
    return nin


def validate_email(email: str, field: str = "email") -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Enter a valid email address", field=field)
    return email


def validate_pin(pin: str, length: int, field: str = "pin") -> str:
    if not pin or not pin.isdigit() or len(pin) != length:
        raise ValidationError(f"PIN must be {length} digits", field=field)
    return pin


def parse_contact(contact: str, field: str = "recipient_contact") -> tuple[ContactChannel, str]:
    """Classify a recipient contact as email or phone and normalize it.

    Anything with an '@' is treated as an email; otherwise it must be a phone
    number. A value is never accepted as both.
    """
    contact = (contact or "").strip()
    if "@" in contact:
        if not EMAIL_RE.match(contact):
            raise ValidationError("Enter a valid email address", field=field)
        return ContactChannel.email, contact.lower()

    phone = normalize_phone(contact)
    if not PHONE_RE.match(phone):
        raise ValidationError("Enter a valid email address or phone number", field=field)
    return ContactChannel.phone, phone
