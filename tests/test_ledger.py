"""
Tests for the InsuranceLedger facade.

Covers the end-to-end flood claim walkthrough, notification publishing,
all-or-nothing rejections and serialized concurrent access.
"""

import threading

import pytest
from pydantic import ValidationError

from src.ledger import (
    ClaimNotPending,
    ClaimStatus,
    EventBus,
    InsuranceLedger,
    NotARegisteredUser,
    PolicyInactive,
    Role,
    Unauthorized,
    get_ledger,
)
from src.ledger import store
from src.ledger.schema import ClaimStatusUpdated, ClaimSubmitted, PolicyIssued, RoleAssigned
from src.utils import config


OWNER = "0xowner"


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def ledger():
    return InsuranceLedger(owner=OWNER)


@pytest.fixture
def staffed(ledger):
    """Ledger with alice as user and bob as admin."""
    ledger.assign_role(OWNER, "alice", Role.USER)
    ledger.assign_role(OWNER, "bob", Role.ADMIN)
    return ledger


# ============================================================================
# Walkthrough
# ============================================================================


def test_flood_claim_walkthrough(ledger):
    """Owner staffs the ledger, bob insures alice, alice claims, bob resolves once."""
    assert ledger.assign_role(OWNER, "alice", "user") == Role.USER
    assert ledger.assign_role(OWNER, "bob", "admin") == Role.ADMIN

    policy_id = ledger.issue_policy("bob", "alice", "flood cover", 1000)
    assert policy_id == 1
    assert ledger.get_policy(1).is_active

    claim_id = ledger.submit_claim("alice", policy_id, "water damage", 500)
    assert claim_id == 1
    assert ledger.get_claim(1).status == ClaimStatus.SUBMITTED

    assert ledger.update_claim_status("bob", 1, ClaimStatus.APPROVED) == ClaimStatus.APPROVED
    assert ledger.get_claim(1).status == ClaimStatus.APPROVED

    with pytest.raises(ClaimNotPending):
        ledger.update_claim_status("bob", 1, ClaimStatus.PAID)
    assert ledger.get_claim(1).status == ClaimStatus.APPROVED

    names = [e.name for e in ledger.events.history()]
    assert names == ["RoleAssigned", "RoleAssigned", "PolicyIssued", "ClaimSubmitted", "ClaimStatusUpdated"]


# ============================================================================
# Notifications
# ============================================================================


class TestNotifications:
    """Notifications follow committed mutations only."""

    def test_payloads(self, staffed):
        staffed.issue_policy("bob", "alice", "flood cover", 1000)
        staffed.submit_claim("alice", 1, "water damage", 500)
        staffed.update_claim_status("bob", 1, "rejected")

        role_events = staffed.events.history(name="RoleAssigned")
        assert [(e.target, e.role) for e in role_events] == [("alice", Role.USER), ("bob", Role.ADMIN)]

        (issued,) = staffed.events.history(name="PolicyIssued")
        assert isinstance(issued, PolicyIssued)
        assert (issued.policy_id, issued.holder) == (1, "alice")

        (submitted,) = staffed.events.history(name="ClaimSubmitted")
        assert isinstance(submitted, ClaimSubmitted)
        assert (submitted.claim_id, submitted.policy_id, submitted.claimant) == (1, 1, "alice")

        (updated,) = staffed.events.history(name="ClaimStatusUpdated")
        assert isinstance(updated, ClaimStatusUpdated)
        assert (updated.claim_id, updated.status) == (1, ClaimStatus.REJECTED)

    def test_sequence_numbers_increase(self, staffed):
        staffed.issue_policy("bob", "alice", "flood cover", 1000)
        sequences = [e.sequence for e in staffed.events.history()]
        assert sequences == [1, 2, 3]

    def test_deactivation_emits_nothing(self, staffed):
        staffed.issue_policy("bob", "alice", "flood cover", 1000)
        before = staffed.events.published_count

        staffed.deactivate_policy("bob", 1)
        assert staffed.events.published_count == before

    def test_rejected_calls_publish_nothing(self, staffed):
        before = staffed.events.published_count

        with pytest.raises(Unauthorized):
            staffed.assign_role("bob", "carol", Role.USER)
        with pytest.raises(NotARegisteredUser):
            staffed.issue_policy("bob", "carol", "cover", 10)
        with pytest.raises(PolicyInactive):
            staffed.submit_claim("alice", 3, "ghost", 10)

        assert staffed.events.published_count == before

    def test_subscriber_receives_events(self, staffed):
        received = []
        staffed.events.subscribe(received.append)

        staffed.issue_policy("bob", "alice", "flood cover", 1000)

        assert len(received) == 1
        assert received[0].name == "PolicyIssued"

        staffed.events.unsubscribe(received.append)
        staffed.issue_policy("bob", "alice", "fire cover", 10)
        assert len(received) == 1

    def test_failing_subscriber_does_not_fail_operation(self, staffed):
        def broken(event):
            raise RuntimeError("observer down")

        staffed.events.subscribe(broken)

        policy_id = staffed.issue_policy("bob", "alice", "flood cover", 1000)

        assert policy_id == 1
        assert staffed.get_policy(1).is_active
        assert staffed.events.history(name="PolicyIssued")[0].policy_id == 1

    def test_history_limit_and_size(self):
        ledger = InsuranceLedger(owner=OWNER, events=EventBus(history_size=2))
        for name in ["a", "b", "c"]:
            ledger.assign_role(OWNER, name, Role.USER)

        assert [e.target for e in ledger.events.history()] == ["b", "c"]
        assert [e.target for e in ledger.events.history(limit=1)] == ["c"]
        assert ledger.events.history(limit=0) == []
        assert ledger.events.published_count == 3


# ============================================================================
# Invariants
# ============================================================================


class TestInvariants:
    """Cross-operation invariants."""

    def test_owner_fixed(self, staffed):
        assert staffed.owner == OWNER
        assert staffed.is_owner(OWNER)
        assert not staffed.is_owner("bob")

    def test_deactivated_policy_never_reactivates(self, staffed):
        staffed.issue_policy("bob", "alice", "flood cover", 1000)
        staffed.deactivate_policy("bob", 1)

        # Nothing in the public surface can set the flag back
        staffed.assign_role(OWNER, "alice", Role.ADMIN)
        staffed.assign_role(OWNER, "alice", Role.USER)
        staffed.issue_policy("bob", "alice", "new cover", 1000)
        staffed.deactivate_policy("bob", 1)

        assert not staffed.get_policy(1).is_active
        assert staffed.get_policy(2).is_active
        assert staffed.get_user_policies("alice") == [1, 2]

    def test_promoted_admin_gains_rights_immediately(self, staffed):
        with pytest.raises(Unauthorized):
            staffed.issue_policy("alice", "alice", "self cover", 10)

        staffed.assign_role(OWNER, "carol", Role.USER)
        staffed.assign_role(OWNER, "alice", Role.ADMIN)

        assert staffed.issue_policy("alice", "carol", "cover", 10) == 1

    def test_claims_for_policy(self, staffed):
        staffed.issue_policy("bob", "alice", "flood cover", 1000)
        staffed.issue_policy("bob", "alice", "fire cover", 1000)
        staffed.submit_claim("alice", 2, "smoke", 10)
        staffed.submit_claim("alice", 1, "leak", 20)
        staffed.submit_claim("alice", 2, "scorch", 30)

        assert staffed.claims_for_policy(2) == [1, 3]
        assert staffed.claims_for_policy(1) == [2]
        assert staffed.get_user_claims("alice") == [1, 2, 3]

    def test_snapshot(self, staffed):
        staffed.issue_policy("bob", "alice", "flood cover", 1000)
        staffed.submit_claim("alice", 1, "water damage", 500)

        snap = staffed.snapshot()

        assert snap["owner"] == OWNER
        assert snap["roles"] == {OWNER: "owner", "alice": "user", "bob": "admin"}
        assert snap["policy_count"] == 1
        assert snap["claim_count"] == 1
        assert snap["policies"][0]["holder"] == "alice"
        assert snap["claims"][0]["status"] == "submitted"
        assert snap["holder_index"] == {"alice": [1]}
        assert snap["claimant_index"] == {"alice": [1]}

    def test_bad_ids_leave_snapshot_intact(self, staffed):
        staffed.issue_policy("bob", "alice", "flood cover", 1000)
        staffed.submit_claim("alice", 1, "water damage", 500)
        before = staffed.events.published_count

        with pytest.raises(ValidationError):
            staffed.update_claim_status("bob", "1", ClaimStatus.APPROVED)
        with pytest.raises(ValidationError):
            staffed.update_claim_status("bob", -1, ClaimStatus.APPROVED)
        with pytest.raises(ValidationError):
            staffed.deactivate_policy("bob", "1")

        snap = staffed.snapshot()
        assert [c["id"] for c in snap["claims"]] == [1]
        assert snap["claims"][0]["status"] == "submitted"
        assert snap["policies"][0]["is_active"] is True
        assert staffed.events.published_count == before


# ============================================================================
# Concurrency
# ============================================================================


def test_concurrent_issuance_yields_unique_sequential_ids(staffed):
    """Parallel callers still get a gap-free, duplicate-free id sequence."""
    issued = []
    guard = threading.Lock()

    def worker():
        for _ in range(50):
            policy_id = staffed.issue_policy("bob", "alice", "bulk", 1)
            with guard:
                issued.append(policy_id)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(issued) == list(range(1, 401))
    assert staffed.get_user_policies("alice") == list(range(1, 401))
    assert staffed.policy_count == 400


# ============================================================================
# Default Ledger
# ============================================================================


def test_default_ledger_from_settings(monkeypatch):
    monkeypatch.setenv("LEDGER_OWNER", "0xdeployer")
    monkeypatch.setenv("LEDGER_STRICT_LOOKUP", "true")
    config.get_settings.cache_clear()
    store.get_ledger.cache_clear()

    try:
        ledger = get_ledger()
        assert ledger.owner == "0xdeployer"
        assert ledger.strict_lookup is True
        assert get_ledger() is ledger

        store.assign_role("0xdeployer", "alice", "user")
        store.assign_role("0xdeployer", "bob", "admin")
        policy_id = store.issue_policy("bob", "alice", "flood cover", 1000)
        claim_id = store.submit_claim("alice", policy_id, "leak", 10)
        store.update_claim_status("bob", claim_id, "paid")

        assert store.get_policy(policy_id).holder == "alice"
        assert store.get_claim(claim_id).status == ClaimStatus.PAID
    finally:
        config.get_settings.cache_clear()
        store.get_ledger.cache_clear()
