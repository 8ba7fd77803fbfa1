import enum


class DeviceStatus(str, enum.Enum):
    active = "active"
    transferred = "transferred"
    lost = "lost"
    stolen = "stolen"


class VerificationStatus(str, enum.Enum):
    verified = "verified"
    pending = "pending"
    unverified = "unverified"


class VerificationMethod(str, enum.Enum):
    receipt = "receipt"
    photo = "photo"
    both = "both"
    none = "none"


class TransferState(str, enum.Enum):
    # initiated and pin_confirmed only exist inside initiate(); never persisted
    initiated = "initiated"
    pin_confirmed = "pin_confirmed"
    awaiting_recipient = "awaiting_recipient"
    accepted = "accepted"
    rejected = "rejected"
    expired = "expired"


class ContactChannel(str, enum.Enum):
    email = "email"
    phone = "phone"


class LedgerKind(str, enum.Enum):
    credit = "credit"
    debit = "debit"
    reversal = "reversal"
