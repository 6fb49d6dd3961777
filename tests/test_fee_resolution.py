from decimal import Decimal

from clinicflow.models import AppointmentStatus, BillingQueueItem, BillingStatus
from clinicflow.services.fee_resolution import (
    FeeContext,
    FeeOrigin,
    find_same_day_appointment,
    resolve_fee,
    resync_pending_fee,
)


class TestResolveFee:
    def test_first_visit_is_new_patient(self, db, seed):
        p = seed.patient()
        v = seed.visit(p, visit_number=1)

        quote = resolve_fee(db, visit_id=v.id, patient_id=p.id)

        assert quote.amount == Decimal("500.00")
        assert quote.fee_type == "New Patient"
        assert quote.source == FeeOrigin.VISIT

    def test_second_visit_is_follow_up(self, db, seed):
        p = seed.patient()
        v = seed.visit(p, visit_number=2)

        quote = resolve_fee(db, visit_id=v.id, patient_id=p.id)

        assert quote.amount == Decimal("300.00")
        assert quote.fee_type == "Follow Up"

    def test_linked_appointment_fee_wins(self, db, seed):
        p = seed.patient()
        appt = seed.appointment(p, fee_amount=750, fee_type="Special",
                                fee_status="pending", days_ago=3)
        v = seed.visit(p, visit_number=1)

        quote = resolve_fee(db, visit_id=v.id, patient_id=p.id,
                            appointment_id=appt.id)

        assert quote.amount == Decimal("750.00")
        assert quote.fee_type == "Special"
        assert quote.payment_status == "pending"
        assert quote.from_appointment

    def test_same_day_appointment_used_without_link(self, db, seed):
        p = seed.patient()
        seed.appointment(p, fee_amount=450, fee_type="Consult")
        v = seed.visit(p, visit_number=2)

        quote = resolve_fee(db, visit_id=v.id, patient_id=p.id)

        assert quote.amount == Decimal("450.00")
        assert quote.source == FeeOrigin.SAME_DAY_APPOINTMENT

    def test_pharmacy_context_ignores_scheduled_appointment(self, db, seed):
        p = seed.patient()
        seed.appointment(p, status=AppointmentStatus.SCHEDULED,
                         fee_amount=450, fee_type="Consult")
        v = seed.visit(p, visit_number=2)

        pharmacy = resolve_fee(db, visit_id=v.id, patient_id=p.id,
                               context=FeeContext.PHARMACY)
        billing = resolve_fee(db, visit_id=v.id, patient_id=p.id,
                              context=FeeContext.BILLING)

        assert pharmacy.amount == Decimal("300.00")
        assert pharmacy.fee_type == "Follow Up"
        assert billing.amount == Decimal("450.00")

    def test_yesterdays_appointment_is_not_same_day(self, db, seed):
        p = seed.patient()
        seed.appointment(p, fee_amount=999, days_ago=1)
        v = seed.visit(p, visit_number=2)

        quote = resolve_fee(db, visit_id=v.id, patient_id=p.id)

        assert quote.amount == Decimal("300.00")

    def test_appointment_without_type_uses_context_default(self, db, seed):
        p = seed.patient()
        seed.appointment(p, fee_amount=200)

        pharmacy = resolve_fee(db, visit_id=None, patient_id=p.id,
                               context=FeeContext.PHARMACY)
        billing = resolve_fee(db, visit_id=None, patient_id=p.id,
                              context=FeeContext.BILLING)

        assert pharmacy.fee_type == "Follow Up"
        assert billing.fee_type == "Consultation"
        assert billing.amount == Decimal("200.00")

    def test_missing_visit_uses_context_default(self, db, seed):
        p = seed.patient()

        pharmacy = resolve_fee(db, visit_id=12345, patient_id=p.id,
                               context=FeeContext.PHARMACY)
        billing = resolve_fee(db, visit_id=12345, patient_id=p.id)

        assert (pharmacy.amount, pharmacy.fee_type) == (Decimal("300.00"),
                                                        "Follow Up")
        assert (billing.amount, billing.fee_type) == (Decimal("300.00"),
                                                      "Consultation")
        assert billing.source == FeeOrigin.DEFAULT

    def test_find_same_day_appointment_filters_status(self, db, seed):
        p = seed.patient()
        seed.appointment(p, status=AppointmentStatus.CANCELLED)
        done = seed.appointment(p, status=AppointmentStatus.COMPLETED)

        found = find_same_day_appointment(
            db, p.id, statuses=(AppointmentStatus.COMPLETED, ))

        assert found.id == done.id


class TestResyncPendingFee:
    def _pending_item(self, db, p, v, appt=None, fee="300", fee_type="Follow Up"):
        item = BillingQueueItem(
            visit_id=v.id,
            patient_id=p.id,
            appointment_id=appt.id if appt else None,
            status=BillingStatus.PENDING,
            fee_amount=Decimal(fee),
            fee_type=fee_type,
            discount_amount=Decimal("50"),
            net_amount=Decimal(fee) - Decimal("50"),
        )
        db.add(item)
        db.flush()
        return item

    def test_late_appointment_edit_is_pulled_in(self, db, seed):
        p = seed.patient()
        appt = seed.appointment(p, fee_amount=300, fee_type="Follow Up")
        v = seed.visit(p, visit_number=2, appointment=appt)
        item = self._pending_item(db, p, v, appt)

        appt.fee_amount = Decimal("400")
        appt.fee_type = "Extended"
        appt.fee_status = "exempt"
        db.flush()

        assert resync_pending_fee(db, item) is True
        assert item.fee_amount == Decimal("400.00")
        assert item.fee_type == "Extended"
        assert item.payment_status == "exempt"
        # stored discount kept
        assert item.net_amount == Decimal("350.00")

    def test_visit_heuristic_never_overwrites_desk_fee(self, db, seed):
        p = seed.patient()
        v = seed.visit(p, visit_number=1)
        item = self._pending_item(db, p, v, fee="999", fee_type="Manual")

        assert resync_pending_fee(db, item) is False
        assert item.fee_amount == Decimal("999")

    def test_non_pending_items_are_left_alone(self, db, seed):
        p = seed.patient()
        appt = seed.appointment(p, fee_amount=800)
        v = seed.visit(p, appointment=appt)
        item = self._pending_item(db, p, v, appt)
        item.status = BillingStatus.PAID

        assert resync_pending_fee(db, item) is False
        assert item.fee_amount == Decimal("300")

    def test_same_day_source_is_linked(self, db, seed):
        p = seed.patient()
        appt = seed.appointment(p, fee_amount=300, fee_type="Follow Up")
        v = seed.visit(p, visit_number=2)
        item = self._pending_item(db, p, v)

        assert resync_pending_fee(db, item) is False
        assert item.appointment_id == appt.id
