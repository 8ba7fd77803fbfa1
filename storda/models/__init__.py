"""Storda Registry Database Models."""

from storda.models.account import Account
from storda.models.device import Device, DeviceStatusChange, RecoveryReport
from storda.models.transfer import TransferHistory, TransferRequest
from storda.models.ledger import LedgerTransaction

__all__ = [
    "Account",
    "Device",
    "DeviceStatusChange",
    "RecoveryReport",
    "TransferRequest",
    "TransferHistory",
    "LedgerTransaction",
]
