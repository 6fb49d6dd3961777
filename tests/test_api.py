import pytest

from clinicflow.models import AppointmentStatus


@pytest.fixture
def visit(db, seed):
    p = seed.patient()
    appt = seed.appointment(p, status=AppointmentStatus.COMPLETED,
                            fee_amount=300, fee_type="Follow Up")
    v = seed.visit(p, visit_number=2, appointment=appt)
    db.commit()
    return v


def _send(client, visit_id, **body):
    resp = client.post(f"/api/opd/visits/{visit_id}/send-to-pharmacy",
                       json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestOpdRoutes:
    def test_save_prescriptions(self, client, visit):
        resp = client.put(
            f"/api/opd/visits/{visit.id}/prescriptions",
            json={"rows": [
                {"medicine": "Arnica", "potency": "30C", "bottles": 2},
                {"medicine": "Sulphur"},
            ]},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert [r["medicine"] for r in body] == ["Arnica", "Sulphur"]
        assert [r["row_order"] for r in body] == [0, 1]

    def test_unknown_visit_is_404(self, client):
        resp = client.put("/api/opd/visits/999/prescriptions",
                          json={"rows": []})

        assert resp.status_code == 404
        assert resp.json()["ok"] is False
        assert resp.json()["error"]["msg"] == "Visit not found"

    def test_validation_error_envelope(self, client, visit):
        resp = client.put(f"/api/opd/visits/{visit.id}/prescriptions",
                          json={"rows": [{"medicine": ""}]})

        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


class TestPharmacyRoutes:
    def test_full_flow(self, client, visit):
        client.put(f"/api/opd/visits/{visit.id}/prescriptions",
                   json={"rows": [{"medicine": "Arnica"}]})
        item = _send(client, visit.id, priority=True)
        assert item["status"] == "pending"
        assert item["priority"] is True

        active = client.get("/api/pharmacy/queue/active").json()
        assert [i["id"] for i in active["items"]] == [item["id"]]
        assert active["items"][0]["prescriptions"][0]["medicine"] == "Arnica"
        assert active["items"][0]["patient"]["id"] == visit.patient_id
        assert active["notification"] is None

        resp = client.post(f"/api/pharmacy/queue/{item['id']}/start")
        assert resp.json()["status"] == "preparing"

        resp = client.post(f"/api/pharmacy/queue/{item['id']}/prepared",
                           json={"prepared_by": "meena"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "prepared"
        assert resp.json()["prepared_by"] == "meena"

        stats = client.get("/api/pharmacy/queue/stats").json()
        assert stats["prepared"] == 1

        open_items = client.get("/api/billing/queue/open").json()
        assert len(open_items) == 1
        assert open_items[0]["visit_id"] == visit.id

    def test_doctor_change_notification(self, client, visit):
        client.put(f"/api/opd/visits/{visit.id}/prescriptions",
                   json={"rows": [{"medicine": "Arnica"}]})
        item = _send(client, visit.id)
        client.get("/api/pharmacy/queue/active")

        client.put(f"/api/opd/visits/{visit.id}/prescriptions",
                   json={"rows": [{"medicine": "Arnica"},
                                  {"medicine": "Sulphur"}]})
        active = client.get("/api/pharmacy/queue/active").json()

        assert active["notification"] == "1 prescription(s) updated by doctor"
        assert active["items"][0]["has_updates"] is True

        resp = client.post(f"/api/pharmacy/queue/{item['id']}/acknowledge")
        assert resp.json()["has_updates"] is False

    def test_invalid_transition_is_409(self, client, visit):
        item = _send(client, visit.id)

        resp = client.post(f"/api/pharmacy/queue/{item['id']}/deliver")

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_STATE"

    def test_stop_requires_reason(self, client, visit):
        item = _send(client, visit.id)

        assert client.post(f"/api/pharmacy/queue/{item['id']}/stop",
                           json={}).status_code == 422
        resp = client.post(f"/api/pharmacy/queue/{item['id']}/stop",
                           json={"reason": "patient left"})
        assert resp.json()["status"] == "stopped"

    def test_missing_item_is_404(self, client):
        assert client.post("/api/pharmacy/queue/999/start").status_code == 404


class TestBillingRoutes:
    @pytest.fixture
    def billing_id(self, client, visit):
        item = _send(client, visit.id)
        client.post(f"/api/pharmacy/queue/{item['id']}/prepared")
        return client.get("/api/billing/queue/open").json()[0]["id"]

    def test_fee_edit_receipt_complete(self, client, visit, billing_id):
        resp = client.patch(f"/api/billing/queue/{billing_id}/fee",
                            json={"fee_amount": "500", "discount_percent": 20})
        assert resp.status_code == 200
        assert float(resp.json()["net_amount"]) == 400.0
        assert float(resp.json()["discount_amount"]) == 100.0

        resp = client.post(f"/api/billing/queue/{billing_id}/receipt",
                           json={"payment_method": "upi"})
        assert resp.status_code == 200
        receipt = resp.json()
        assert receipt["receipt_number"].startswith("RCP-")
        assert receipt["payment_method"] == "upi"
        assert float(receipt["items"][0]["total"]) == 500.0

        resp = client.post(f"/api/billing/queue/{billing_id}/complete")
        assert resp.json()["status"] == "completed"

        completed = client.get("/api/billing/queue/completed").json()
        assert [i["id"] for i in completed] == [billing_id]

        history = client.get(
            f"/api/billing/patients/{visit.patient_id}/fee-history").json()
        assert len(history) == 1
        assert history[0]["payment_method"] == "upi"

        resp = client.post(f"/api/billing/queue/{billing_id}/reopen")
        assert resp.json()["status"] == "paid"

    def test_receipt_markers(self, client, billing_id):
        receipt = client.post(
            f"/api/billing/queue/{billing_id}/receipt").json()

        first = client.post(
            f"/api/billing/receipts/{receipt['id']}/printed").json()
        second = client.post(
            f"/api/billing/receipts/{receipt['id']}/printed").json()
        assert first["printed_at"] is not None
        assert first["printed_at"] == second["printed_at"]

        sent = client.post(
            f"/api/billing/receipts/{receipt['id']}/whatsapp-sent").json()
        assert sent["whatsapp_sent_at"] is not None

        fetched = client.get(f"/api/billing/receipts/{receipt['id']}")
        assert fetched.status_code == 200

    def test_complete_pending_is_409(self, client, billing_id):
        resp = client.post(f"/api/billing/queue/{billing_id}/complete")
        assert resp.status_code == 409

    def test_bad_discount_is_422(self, client, billing_id):
        resp = client.patch(f"/api/billing/queue/{billing_id}/fee",
                            json={"discount_percent": 150})
        assert resp.status_code == 422

    def test_sweep_endpoint(self, client):
        assert client.post("/api/billing/queue/sweep").json() == {"created": 0}

    def test_medicine_bill_draft_and_save(self, client, visit, billing_id):
        draft = client.get(f"/api/billing/queue/{billing_id}/medicine-bill")
        assert draft.status_code == 200
        assert draft.json()["id"] is None
        assert draft.json()["status"] == "draft"

        resp = client.put(
            f"/api/billing/queue/{billing_id}/medicine-bill",
            json={
                "items": [{"medicine": "Arnica", "amount": "120"},
                          {"medicine": "Sulphur", "amount": "80"}],
                "discount_percent": 10,
                "tax_percent": 5,
            },
        )
        assert resp.status_code == 200
        bill = resp.json()
        assert bill["id"] is not None
        assert bill["status"] == "saved"
        assert float(bill["grand_total"]) == 189.0

    def test_unknown_billing_item(self, client):
        assert client.get(
            "/api/billing/queue/999/medicine-bill").status_code == 404
        assert client.post(
            "/api/billing/queue/999/receipt").status_code == 404
        assert client.get("/api/billing/receipts/999").status_code == 404


def test_health(client):
    assert client.get("/").status_code == 200
