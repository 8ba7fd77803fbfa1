"""Verification and blacklist registry tests."""

import threading

import pytest

from conftest import device_input, transfer_input
from storda.errors import BlacklistedDeviceError, NotOwnerError, NotVerifiedError, ValidationError
from storda.models.enums import VerificationMethod, VerificationStatus
from storda.services import device_service, transfer_service, verification_service
from storda.services.blacklist import BlacklistResult, LocalBlacklist


class SlowRegistry:
    """Blocks until released, like a registry that stopped answering."""

    def __init__(self):
        self.release = threading.Event()

    def lookup(self, imei):
        self.release.wait(5)
        return BlacklistResult(False)


class BrokenRegistry:
    def lookup(self, imei):
        raise ConnectionError("registry down")


@pytest.fixture()
def slow_registry(monkeypatch):
    registry = SlowRegistry()
    verification_service.set_registry(registry)
    monkeypatch.setattr(verification_service.settings, "blacklist_timeout_seconds", 0.05)
    yield registry
    registry.release.set()


def test_local_rule():
    registry = LocalBlacklist(["490154203237518"])
    assert registry.lookup("123456789010000").is_blacklisted
    assert registry.lookup("490154203237518").is_blacklisted
    assert not registry.lookup("123456789012345").is_blacklisted


def test_check_blacklist_times_out(slow_registry):
    result = verification_service.check_blacklist("123456789012345")
    assert result.checked is False
    assert result.is_blacklisted is False


def test_check_blacklist_swallows_registry_errors():
    verification_service.set_registry(BrokenRegistry())
    result = verification_service.check_blacklist("123456789012345")
    assert result.checked is False


def test_registration_degrades_when_registry_is_slow(session, owner, slow_registry):
    device = device_service.register(owner, device_input(has_receipt=True), session)

    assert device.verification_status == VerificationStatus.unverified
    assert device.verification_method == VerificationMethod.receipt
    assert device.blacklist_check_pending is True
    assert owner.points_balance == 400


def test_recheck_restores_verification(session, owner, slow_registry):
    device = device_service.register(owner, device_input(has_receipt=True), session)
    slow_registry.release.set()
    verification_service.set_registry(LocalBlacklist())

    assert verification_service.recheck_pending(session) == 1
    session.refresh(device)
    assert device.blacklist_check_pending is False
    assert device.verification_status == VerificationStatus.verified


def test_recheck_flags_blacklisted_device(session, owner, slow_registry):
    device = device_service.register(owner, device_input(has_receipt=True), session)
    slow_registry.release.set()
    verification_service.set_registry(LocalBlacklist([device.imei]))

    verification_service.recheck_blacklist(device, session)
    assert device.is_blacklisted is True
    assert device.verification_status == VerificationStatus.unverified
    assert device_service.check_imei(device.imei, session)["reported"] is True

    with pytest.raises(BlacklistedDeviceError):
        verification_service.verify(device, VerificationMethod.receipt, owner, session)


def test_verify_pending_device(session, owner):
    device = device_service.register(owner, device_input(), session)
    assert device.verification_status == VerificationStatus.pending

    device = verification_service.verify(device, VerificationMethod.photo, owner, session)
    assert device.verification_status == VerificationStatus.verified
    assert device.verification_method == VerificationMethod.photo
    assert device.has_photo is True
    assert device.verification_date is not None


def test_verify_needs_proof(session, owner):
    device = device_service.register(owner, device_input(), session)
    with pytest.raises(ValidationError):
        verification_service.verify(device, VerificationMethod.none, owner, session)


def test_verify_owner_only(session, owner, recipient):
    device = device_service.register(owner, device_input(), session)
    with pytest.raises(NotOwnerError):
        verification_service.verify(device, VerificationMethod.receipt, recipient, session)


def test_verify_keeps_device_unverified_until_blacklist_check_completes(session, owner):
    verification_service.set_registry(BrokenRegistry())
    device = device_service.register(owner, device_input(), session)
    assert device.blacklist_check_pending is True

    device = verification_service.verify(device, VerificationMethod.receipt, owner, session)
    assert device.verification_status == VerificationStatus.unverified
    assert device.has_receipt is True
    assert device.blacklist_check_pending is True
    with pytest.raises(NotVerifiedError):
        transfer_service.initiate(owner, transfer_input(device.id), session)

    # Registry back: verifying again runs the lookup first
    verification_service.set_registry(LocalBlacklist())
    device = verification_service.verify(device, VerificationMethod.receipt, owner, session)
    assert device.blacklist_check_pending is False
    assert device.verification_status == VerificationStatus.verified


def test_verify_refuses_device_found_blacklisted_on_lookup(session, owner):
    verification_service.set_registry(BrokenRegistry())
    device = device_service.register(owner, device_input(), session)

    verification_service.set_registry(LocalBlacklist([device.imei]))
    with pytest.raises(BlacklistedDeviceError):
        verification_service.verify(device, VerificationMethod.receipt, owner, session)
    session.refresh(device)
    assert device.is_blacklisted is True


def test_transfer_refused_while_blacklist_check_pending(session, owner):
    device = device_service.register(owner, device_input(has_receipt=True), session)
    device.blacklist_check_pending = True
    session.add(device)
    session.commit()

    with pytest.raises(NotVerifiedError) as exc:
        transfer_service.initiate(owner, transfer_input(device.id), session)
    assert "blacklist" in exc.value.message
