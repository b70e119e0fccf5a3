"""
Tests for the reconciliation session state machine.

Async transitions are driven with asyncio.run; stores are in-memory.
"""

import asyncio
from decimal import Decimal

import pytest

from debt_reconciler.audit import AuditLogger
from debt_reconciler.models.audit import AuditEventType
from debt_reconciler.models.debt import (
    AccountType,
    CreditReportUpload,
    DifferenceField,
    DiscrepancyStatus,
)
from debt_reconciler.reconciliation import (
    InvalidTransitionError,
    ReconciliationError,
    ReconciliationSession,
    build_discrepancy,
)
from debt_reconciler.services.storage import (
    InMemoryAuditStorage,
    InMemoryDebtStore,
    InMemoryUploadHistory,
    StorageError,
)

from conftest import make_debt, make_entry


OWNER = "owner-1"


class SessionHarness:
    """A session over in-memory stores, plus handles for assertions."""
    
    def __init__(self, entries, debts, store_fail_on=(), history_fail_on=()):
        self.store = InMemoryDebtStore(debts, fail_on=store_fail_on)
        self.history = InMemoryUploadHistory(fail_on=history_fail_on)
        self.audit_storage = InMemoryAuditStorage()
        self.upload = CreditReportUpload(owner_id=OWNER, file_names=["report.png"])
        asyncio.run(self.history.append_upload(self.upload))
        
        self.session = ReconciliationSession.from_report(
            entries,
            asyncio.run(self.store.list_debts(OWNER)),
            debt_store=self.store,
            upload_history=self.history,
            upload_id=self.upload.id,
            owner_id=OWNER,
            audit_logger=AuditLogger(self.audit_storage),
        )
    
    def event_types(self):
        return [e.event_type for e in self.audit_storage.events]
    
    def stored(self, debt_id):
        return asyncio.run(self.store.get_debt(debt_id))


@pytest.fixture
def chase():
    """Chase entry matched to 'Chase CC' with Balance and Lender differences."""
    debt = make_debt()
    harness = SessionHarness([make_entry()], [debt])
    return harness, harness.session.discrepancies[0], debt


class TestViews:
    
    def test_partitions(self):
        in_sync = make_debt(name="Zopa", debt_type="loan", lender="Zopa", balance=2000)
        harness = SessionHarness(
            [
                make_entry(),
                make_entry(name="Zopa", account_type=AccountType.LOAN, lender="Zopa", balance=2000),
                make_entry(name="Aqua", lender="NewDay", balance=80),
            ],
            [make_debt(), in_sync],
        )
        session = harness.session
        chase, zopa, aqua = session.discrepancies
        
        assert session.needs_attention() == [chase]
        assert session.matched() == [zopa]
        assert session.unmatched() == [aqua]
    
    def test_dismissed_leaves_every_view(self, chase):
        harness, discrepancy, _ = chase
        harness.session.dismiss(discrepancy)
        assert harness.session.needs_attention() == []
        assert harness.session.matched() == []
        assert harness.session.unmatched() == []
        assert harness.session.discrepancies == [discrepancy]
    
    def test_applied_moves_to_matched(self, chase):
        harness, discrepancy, _ = chase
        asyncio.run(harness.session.apply_selected(discrepancy))
        assert harness.session.needs_attention() == []
        assert harness.session.matched() == [discrepancy]


class TestLink:
    
    def test_link_twice_replaces_differences(self):
        entry = make_entry(monthly_payment=Decimal("25"))
        card = make_debt(minimum_payment=Decimal("25"))
        sapphire = make_debt(
            name="Chase Sapphire",
            lender="Chase",
            balance=500,
            minimum_payment=Decimal("40"),
        )
        harness = SessionHarness([entry], [card, sapphire])
        session = harness.session
        [discrepancy] = session.discrepancies
        assert discrepancy.matched_debt.id == card.id
        
        result = session.link_to(discrepancy, sapphire)
        assert result.success
        assert discrepancy.status == DiscrepancyStatus.LINKED
        assert discrepancy.manually_linked_id == sapphire.id
        assert discrepancy.difference_fields == [DifferenceField.MONTHLY_PAYMENT]
        assert discrepancy.selected_fields == {DifferenceField.MONTHLY_PAYMENT}
        
        session.link_to(discrepancy, card)
        assert discrepancy.difference_fields == [
            DifferenceField.BALANCE,
            DifferenceField.LENDER,
        ]
        assert discrepancy.selected_fields == {
            DifferenceField.BALANCE,
            DifferenceField.LENDER,
        }
    
    def test_link_unmatched_entry(self):
        entry = make_entry(name="Aqua", lender="NewDay", balance=80)
        debt = make_debt(name="Aqua Classic", lender="NewDay", balance=80)
        harness = SessionHarness([entry], [])
        [discrepancy] = harness.session.discrepancies
        
        result = harness.session.link_to(discrepancy, debt)
        assert result.success
        assert discrepancy.matched_debt.id == debt.id
        assert discrepancy.differences == []
    
    def test_link_to_debt_used_elsewhere_is_noop(self):
        debt = make_debt()
        harness = SessionHarness(
            [make_entry(), make_entry(name="Aqua", lender="NewDay", balance=80)],
            [debt],
        )
        _, aqua = harness.session.discrepancies
        
        result = harness.session.link_to(aqua, debt)
        assert not result.success
        assert "already matched" in result.message
        assert aqua.matched_debt is None
        assert aqua.status == DiscrepancyStatus.PENDING
    
    def test_link_to_debt_of_dismissed_entry(self):
        debt = make_debt()
        harness = SessionHarness(
            [make_entry(), make_entry(name="Aqua", lender="NewDay", balance=80)],
            [debt],
        )
        chase, aqua = harness.session.discrepancies
        harness.session.dismiss(chase)
        
        assert harness.session.link_to(aqua, debt).success
    
    def test_link_makes_no_store_calls(self, chase):
        harness, discrepancy, debt = chase
        harness.session.link_to(discrepancy, debt)
        assert harness.store.update_calls == []
        assert harness.audit_storage.events == []


class TestToggle:
    
    def test_toggle_flips_selection(self, chase):
        harness, discrepancy, _ = chase
        result = harness.session.toggle_field(discrepancy, DifferenceField.LENDER)
        assert result.success
        assert result.message == "Lender will be kept"
        assert discrepancy.selected_fields == {DifferenceField.BALANCE}
        
        result = harness.session.toggle_field(discrepancy, "Lender")
        assert result.message == "Lender will be updated"
        assert DifferenceField.LENDER in discrepancy.selected_fields
    
    def test_toggle_absent_field_is_noop(self, chase):
        harness, discrepancy, _ = chase
        before = set(discrepancy.selected_fields)
        
        result = harness.session.toggle_field(discrepancy, DifferenceField.MONTHLY_PAYMENT)
        assert not result.success
        assert discrepancy.selected_fields == before
    
    def test_toggle_unknown_field(self, chase):
        harness, discrepancy, _ = chase
        assert not harness.session.toggle_field(discrepancy, "Colour").success


class TestApply:
    
    def test_apply_selected_fields(self, chase):
        harness, discrepancy, debt = chase
        harness.session.toggle_field(discrepancy, DifferenceField.LENDER)
        
        result = asyncio.run(harness.session.apply_selected(discrepancy))
        
        assert result.success
        assert result.message == "Updated Chase CC"
        assert harness.store.update_calls == [(debt.id, {"balance": Decimal("500")})]
        stored = harness.stored(debt.id)
        assert stored.balance == Decimal("500")
        assert stored.lender == "Chase Bank"
        
        assert discrepancy.status == DiscrepancyStatus.LINKED
        assert discrepancy.applied
        assert discrepancy.differences == []
        assert discrepancy.matched_debt.balance == Decimal("500")
        assert harness.upload.updates_applied == 1
        assert AuditEventType.UPDATES_APPLIED in harness.event_types()
    
    def test_apply_monthly_payment_updates_both_fields(self):
        entry = make_entry(lender="Chase Bank", balance=505, monthly_payment=Decimal("60"))
        debt = make_debt(minimum_payment=Decimal("25"), planned_payment=Decimal("40"))
        harness = SessionHarness([entry], [debt])
        [discrepancy] = harness.session.discrepancies
        
        asyncio.run(harness.session.apply_selected(discrepancy))
        stored = harness.stored(debt.id)
        assert stored.minimum_payment == Decimal("60")
        assert stored.planned_payment == Decimal("60")
    
    def test_empty_selection_writes_nothing(self, chase):
        harness, discrepancy, _ = chase
        harness.session.toggle_field(discrepancy, DifferenceField.BALANCE)
        harness.session.toggle_field(discrepancy, DifferenceField.LENDER)
        
        result = asyncio.run(harness.session.apply_selected(discrepancy))
        
        assert not result.success
        assert result.message == "No fields selected to update"
        assert harness.store.update_calls == []
        assert discrepancy.status == DiscrepancyStatus.PENDING
        assert not discrepancy.applied
        assert harness.upload.updates_applied == 0
        assert harness.event_types() == [AuditEventType.APPLY_SKIPPED]
    
    def test_apply_without_differences_completes(self):
        """Linking to an identical debt then applying needs no store write."""
        entry = make_entry(name="Aqua", lender="NewDay", balance=80)
        debt = make_debt(name="Aqua Classic", lender="NewDay", balance=80)
        harness = SessionHarness([entry], [])
        [discrepancy] = harness.session.discrepancies
        harness.session.link_to(discrepancy, debt)
    
        result = asyncio.run(harness.session.apply_selected(discrepancy))
    
        assert result.success
        assert result.message == "Aqua Classic is already up to date"
        assert discrepancy.applied
        assert discrepancy.status == DiscrepancyStatus.LINKED
        assert harness.store.update_calls == []
        assert harness.upload.updates_applied == 0
        assert harness.session.matched() == [discrepancy]
    
    def test_store_failure_leaves_state_unchanged(self):
        debt = make_debt()
        harness = SessionHarness([make_entry()], [debt], store_fail_on=["update_debt"])
        [discrepancy] = harness.session.discrepancies
        before = discrepancy.model_copy(deep=True)
        
        with pytest.raises(StorageError):
            asyncio.run(harness.session.apply_selected(discrepancy))
        
        assert discrepancy == before
        assert harness.stored(debt.id).balance == Decimal("505")
        assert harness.upload.updates_applied == 0
        assert harness.event_types() == [AuditEventType.STORE_WRITE_FAILED]
    
    def test_counter_failure_does_not_undo_apply(self):
        debt = make_debt()
        harness = SessionHarness(
            [make_entry()],
            [debt],
            history_fail_on=["increment_updates_applied"],
        )
        [discrepancy] = harness.session.discrepancies
        
        result = asyncio.run(harness.session.apply_selected(discrepancy))
        
        assert result.success
        assert discrepancy.applied
        assert harness.upload.updates_applied == 0
        assert harness.event_types() == [
            AuditEventType.UPDATES_APPLIED,
            AuditEventType.STORE_WRITE_FAILED,
        ]
    
    def test_counter_counts_each_apply(self):
        debts = [make_debt(), make_debt(name="Zopa", debt_type="loan", lender="Zopa", balance=900)]
        entries = [
            make_entry(),
            make_entry(name="Zopa", account_type=AccountType.LOAN, lender="Zopa", balance=1000),
        ]
        harness = SessionHarness(entries, debts)
        for discrepancy in harness.session.discrepancies:
            asyncio.run(harness.session.apply_selected(discrepancy))
        assert harness.upload.updates_applied == 2
    
    def test_apply_twice_is_rejected(self, chase):
        harness, discrepancy, _ = chase
        asyncio.run(harness.session.apply_selected(discrepancy))
        
        with pytest.raises(InvalidTransitionError):
            asyncio.run(harness.session.apply_selected(discrepancy))
        assert len(harness.store.update_calls) == 1
    
    def test_applied_is_frozen(self, chase):
        harness, discrepancy, debt = chase
        asyncio.run(harness.session.apply_selected(discrepancy))
        
        with pytest.raises(InvalidTransitionError):
            harness.session.link_to(discrepancy, debt)
        with pytest.raises(InvalidTransitionError):
            harness.session.toggle_field(discrepancy, DifferenceField.BALANCE)
        with pytest.raises(InvalidTransitionError):
            harness.session.dismiss(discrepancy)
    
    def test_apply_unmatched_is_rejected(self):
        harness = SessionHarness([make_entry()], [])
        [discrepancy] = harness.session.discrepancies
        with pytest.raises(InvalidTransitionError):
            asyncio.run(harness.session.apply_selected(discrepancy))


class TestAddAsNew:
    
    def test_adds_unmatched_entry(self):
        entry = make_entry(
            name="Zopa Loan",
            account_type=AccountType.LOAN,
            lender="Zopa",
            balance=4000,
            original_borrowed=Decimal("6000"),
        )
        harness = SessionHarness([entry], [])
        [discrepancy] = harness.session.discrepancies
        
        result = asyncio.run(harness.session.add_as_new(discrepancy))
        
        assert result.success
        assert result.message == "Added Zopa Loan as new debt"
        assert discrepancy.status == DiscrepancyStatus.ADDED
        [created] = asyncio.run(harness.store.list_debts(OWNER))
        assert created.owner_id == OWNER
        assert created.debt_type == "personal_loan"
        assert created.starting_balance == Decimal("6000")
        assert harness.event_types() == [AuditEventType.DEBT_ADDED]
    
    def test_matched_entry_is_rejected(self, chase):
        harness, discrepancy, _ = chase
        with pytest.raises(InvalidTransitionError):
            asyncio.run(harness.session.add_as_new(discrepancy))
    
    def test_add_twice_is_rejected(self):
        harness = SessionHarness([make_entry()], [])
        [discrepancy] = harness.session.discrepancies
        asyncio.run(harness.session.add_as_new(discrepancy))
        with pytest.raises(InvalidTransitionError):
            asyncio.run(harness.session.add_as_new(discrepancy))
    
    def test_store_failure(self):
        harness = SessionHarness([make_entry()], [], store_fail_on=["create_debt"])
        [discrepancy] = harness.session.discrepancies
        with pytest.raises(StorageError):
            asyncio.run(harness.session.add_as_new(discrepancy))
        assert discrepancy.status == DiscrepancyStatus.PENDING


class TestDismiss:
    
    def test_dismiss_pending(self, chase):
        harness, discrepancy, _ = chase
        result = harness.session.dismiss(discrepancy)
        assert result.success
        assert discrepancy.status == DiscrepancyStatus.DISMISSED
        assert discrepancy.differences == []
        assert discrepancy.selected_fields == set()
    
    def test_dismissed_is_terminal(self, chase):
        harness, discrepancy, debt = chase
        harness.session.dismiss(discrepancy)
        
        with pytest.raises(InvalidTransitionError):
            harness.session.dismiss(discrepancy)
        with pytest.raises(InvalidTransitionError):
            harness.session.link_to(discrepancy, debt)
        with pytest.raises(InvalidTransitionError):
            asyncio.run(harness.session.apply_selected(discrepancy))
    
    def test_linked_cannot_be_dismissed(self, chase):
        harness, discrepancy, debt = chase
        harness.session.link_to(discrepancy, debt)
        with pytest.raises(InvalidTransitionError):
            harness.session.dismiss(discrepancy)


class TestSessionErrors:
    
    def test_foreign_discrepancy(self, chase):
        harness, _, debt = chase
        outsider = build_discrepancy(make_entry(), debt, 100)
        with pytest.raises(ReconciliationError):
            harness.session.dismiss(outsider)
    
    def test_no_store_configured(self):
        session = ReconciliationSession.from_report([make_entry()], [make_debt()])
        [discrepancy] = session.discrepancies
        with pytest.raises(ReconciliationError):
            asyncio.run(session.apply_selected(discrepancy))
    
    def test_invalid_transition_message(self, chase):
        harness, discrepancy, _ = chase
        harness.session.dismiss(discrepancy)
        with pytest.raises(InvalidTransitionError, match="dismissed"):
            harness.session.dismiss(discrepancy)
