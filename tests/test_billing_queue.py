from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from clinicflow.models import (
    BillingNumberSeries,
    BillingQueueItem,
    BillingStatus,
    DoctorFee,
    FeeHistory,
    MedicineBill,
    MedicineBillStatus,
)
from clinicflow.services import billing_queue as svc
from clinicflow.services.billing_numbers import receipt_prefix
from clinicflow.services.billing_queue import BillingStateError


@pytest.fixture
def make_item(db, seed):
    def _make(*, visit_number=1, fee="500", fee_type="New Patient",
              appointment=None):
        p = seed.patient()
        v = seed.visit(p, visit_number=visit_number, appointment=appointment)
        item = BillingQueueItem(
            visit_id=v.id,
            patient_id=p.id,
            appointment_id=appointment.id if appointment else None,
            fee_amount=Decimal(fee),
            fee_type=fee_type,
            net_amount=Decimal(fee),
        )
        db.add(item)
        db.flush()
        return item

    return _make


class TestStateMachine:
    def test_receipt_complete_reopen(self, db, make_item):
        item = make_item()

        receipt = svc.generate_receipt(db, item.id, payment_method="cash")

        assert item.status == BillingStatus.PAID
        assert item.payment_status == "paid"
        assert item.payment_method == "cash"
        assert item.receipt_number == receipt.receipt_number
        assert item.receipt_generated_at is not None
        assert item.net_amount == Decimal("500")
        assert receipt.payment_status == "paid"
        assert receipt.items == [{
            "description": "New Patient",
            "quantity": 1,
            "unit_price": "500.00",
            "total": "500.00",
        }]

        svc.complete(db, item.id)

        assert item.status == BillingStatus.COMPLETED
        assert item.completed_at is not None
        history = db.query(FeeHistory).filter_by(patient_id=item.patient_id).all()
        assert len(history) == 1
        assert history[0].payment_method == "cash"
        assert history[0].fee_type == "first-visit"
        assert history[0].amount == Decimal("500.00")
        assert history[0].receipt_id == receipt.receipt_number

        svc.reopen(db, item.id)

        assert item.status == BillingStatus.PAID
        assert db.query(FeeHistory).filter_by(
            patient_id=item.patient_id).count() == 1

    def test_follow_up_history_type(self, db, make_item):
        item = make_item(visit_number=3, fee="300", fee_type="Follow Up")
        svc.generate_receipt(db, item.id, payment_method="upi")
        svc.complete(db, item.id)

        row = db.query(FeeHistory).one()
        assert row.fee_type == "follow-up"
        assert row.payment_method == "upi"

    def test_receipt_defaults_to_cash(self, db, make_item):
        item = make_item()
        receipt = svc.generate_receipt(db, item.id)
        assert receipt.payment_method == "cash"

    def test_receipt_numbers_are_sequential_per_year(self, db, make_item):
        now = datetime(2026, 3, 1, 10, 0)
        a = svc.generate_receipt(db, make_item().id, now=now)
        b = svc.generate_receipt(db, make_item().id, now=now)
        c = svc.generate_receipt(db, make_item().id,
                                 now=now.replace(year=2027))

        assert a.receipt_number == "RCP-2026-000001"
        assert b.receipt_number == "RCP-2026-000002"
        assert c.receipt_number == "RCP-2027-000001"

    def test_each_year_is_its_own_series(self, db, make_item):
        now = datetime(2026, 3, 1, 10, 0)
        svc.generate_receipt(db, make_item().id, now=now)
        svc.generate_receipt(db, make_item().id, now=now.replace(year=2027))

        rows = db.query(BillingNumberSeries).order_by(
            BillingNumberSeries.prefix).all()

        assert receipt_prefix(now) == "RCP-2026-"
        assert [(r.prefix, r.next_number) for r in rows] == [
            ("RCP-2026-", 2), ("RCP-2027-", 2)]

    def test_receipt_only_from_pending(self, db, make_item):
        item = make_item()
        svc.generate_receipt(db, item.id)
        with pytest.raises(BillingStateError):
            svc.generate_receipt(db, item.id)

    def test_complete_only_from_paid(self, db, make_item):
        item = make_item()
        with pytest.raises(BillingStateError):
            svc.complete(db, item.id)

    def test_reopen_only_from_completed(self, db, make_item):
        item = make_item()
        svc.generate_receipt(db, item.id)
        with pytest.raises(BillingStateError):
            svc.reopen(db, item.id)

    def test_receipt_marks_saved_medicine_bill_paid(self, db, make_item):
        item = make_item()
        bill = MedicineBill(billing_queue_id=item.id,
                            patient_id=item.patient_id,
                            visit_id=item.visit_id,
                            status=MedicineBillStatus.SAVED)
        db.add(bill)
        db.flush()

        svc.generate_receipt(db, item.id)

        assert bill.status == MedicineBillStatus.PAID

    def test_missing_item_returns_none(self, db):
        assert svc.edit_fee(db, 404, fee_amount=Decimal("1")) is None
        assert svc.generate_receipt(db, 404) is None
        assert svc.complete(db, 404) is None
        assert svc.reopen(db, 404) is None


class TestFeeEdit:
    def test_discount_applied(self, db, make_item):
        item = make_item()
        svc.edit_fee(db, item.id, discount_percent=Decimal("0"))

        svc.edit_fee(db, item.id, discount_percent=Decimal("20"))

        assert item.fee_amount == Decimal("500.00")
        assert item.discount_amount == Decimal("100.00")
        assert item.net_amount == Decimal("400.00")
        assert item.status == BillingStatus.PENDING

    def test_edit_allowed_while_paid(self, db, make_item):
        item = make_item()
        svc.generate_receipt(db, item.id)

        svc.edit_fee(db, item.id, notes="waived later")

        assert item.status == BillingStatus.PAID
        assert item.notes == "waived later"

    def test_edit_rejected_when_completed(self, db, make_item):
        item = make_item()
        svc.generate_receipt(db, item.id)
        svc.complete(db, item.id)
        with pytest.raises(BillingStateError):
            svc.edit_fee(db, item.id, fee_amount=Decimal("100"))

    def test_edit_propagates_to_appointment_and_doctor_fee(
            self, db, seed, make_item):
        p = seed.patient()
        appt = seed.appointment(p, fee_amount=500, fee_type="New Patient")
        item = make_item(appointment=appt)
        fee_row = DoctorFee(patient_id=item.patient_id,
                            visit_id=item.visit_id,
                            amount=Decimal("500"),
                            fee_type="New Patient")
        db.add(fee_row)
        db.flush()

        svc.edit_fee(db, item.id, fee_amount=Decimal("450"),
                     fee_type="Concession")

        assert appt.fee_amount == Decimal("450.00")
        assert appt.fee_type == "Concession"
        assert fee_row.amount == Decimal("450.00")
        assert fee_row.fee_type == "Concession"

    def test_edit_without_targets_still_applies(self, db, make_item):
        item = make_item()
        svc.edit_fee(db, item.id, fee_amount=Decimal("250"))
        assert item.net_amount == Decimal("250.00")


class TestReceiptMarkers:
    def test_first_timestamp_is_kept(self, db, make_item):
        receipt = svc.generate_receipt(db, make_item().id)
        first = datetime(2026, 1, 1, 9, 0)

        svc.mark_receipt_printed(db, receipt.id, now=first)
        svc.mark_receipt_printed(db, receipt.id, now=first + timedelta(hours=1))
        svc.mark_receipt_whatsapp_sent(db, receipt.id, now=first)
        svc.mark_receipt_whatsapp_sent(db, receipt.id,
                                       now=first + timedelta(hours=2))

        assert receipt.printed_at == first
        assert receipt.whatsapp_sent_at == first

    def test_missing_receipt(self, db):
        assert svc.get_receipt(db, 404) is None
        assert svc.mark_receipt_printed(db, 404) is None
        assert svc.mark_receipt_whatsapp_sent(db, 404) is None


class TestListings:
    def test_open_and_completed(self, db, make_item):
        a = make_item()
        b = make_item()
        c = make_item()
        svc.generate_receipt(db, b.id)
        svc.generate_receipt(db, c.id)
        svc.complete(db, c.id)

        assert [x.id for x in svc.list_open(db)] == [a.id, b.id]
        assert [x.id for x in svc.list_completed(db)] == [c.id]

    def test_fee_history_newest_first(self, db, seed, make_item):
        item = make_item()
        older = datetime(2025, 1, 1, 9, 0)
        svc.generate_receipt(db, item.id, now=older)
        svc.complete(db, item.id, now=older)
        db.add(FeeHistory(patient_id=item.patient_id, fee_type="follow-up",
                          amount=Decimal("300"), payment_method="card",
                          payment_status="paid",
                          paid_date=datetime(2026, 1, 1, 9, 0)))
        db.flush()

        rows = svc.fee_history(db, item.patient_id)

        assert [r.payment_method for r in rows] == ["card", "cash"]
