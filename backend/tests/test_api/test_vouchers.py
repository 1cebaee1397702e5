"""Тесты API валов."""
from tests.conftest import make_material, make_rental

MATERIAL_PAYLOAD = {
    "operator_name": "María López",
    "vehicle_plate": "xyz9876",
    "material_id": 1,
    "bank_id": 1,
    "capacity_m3": "7",
    "requested_volume_m3": "7",
}

RENTAL_PAYLOAD = {
    "operator_name": "Juan Pérez",
    "vehicle_plate": "ABC1234",
    "material_id": 1,
    "union_id": 1,
    "capacity_m3": "14",
    "start_time": "2026-03-02T08:00:00",
}


class TestCreate:

    def test_create_material(self, client, catalog):
        response = client.post("/api/v1/vouchers/material", json=MATERIAL_PAYLOAD)
        assert response.status_code == 201
        data = response.json()
        assert data["folio"] == "CD-140-00001"
        assert data["state"] == "issued"
        assert data["vehicle_plate"] == "XYZ9876"
        assert data["material_detail"]["weight_tons"] is None

    def test_create_rental_is_in_process(self, client, catalog):
        response = client.post("/api/v1/vouchers/rental", json=RENTAL_PAYLOAD)
        assert response.status_code == 201
        data = response.json()
        assert data["state"] == "in_process"
        assert data["rental_detail"]["end_time"] is None
        assert data["rental_detail"]["subtotal"] is None

    def test_second_voucher_gets_next_folio(self, client, catalog):
        client.post("/api/v1/vouchers/material", json=MATERIAL_PAYLOAD)
        response = client.post("/api/v1/vouchers/rental", json=RENTAL_PAYLOAD)
        assert response.json()["folio"] == "CD-140-00002"

    def test_rental_without_rate(self, client, catalog):
        response = client.post("/api/v1/vouchers/rental", json={**RENTAL_PAYLOAD, "union_id": 2})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_invalid_payload(self, client, catalog):
        response = client.post("/api/v1/vouchers/material", json={**MATERIAL_PAYLOAD, "vehicle_plate": "AB"})
        assert response.status_code == 422

    def test_missing_site_header(self, client, catalog):
        response = client.post(
            "/api/v1/vouchers/material",
            json=MATERIAL_PAYLOAD,
            headers={"X-Site-Id": ""},
        )
        assert response.status_code in (400, 422)


class TestRead:

    def test_list_scoped_to_site(self, client, db_session, catalog):
        make_material(db_session, folio="CD-140-00001")
        make_material(db_session, folio="CD-210-00001", site_id=2)
        response = client.get("/api/v1/vouchers")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["folio"] == "CD-140-00001"

    def test_list_filter_by_state(self, client, db_session, catalog):
        make_material(db_session, folio="CD-140-00001")
        make_rental(db_session, folio="CD-140-00002")
        response = client.get("/api/v1/vouchers", params={"state": "in_process"})
        assert [v["folio"] for v in response.json()["items"]] == ["CD-140-00002"]

    def test_get_by_folio(self, client, db_session, catalog):
        make_rental(db_session, folio="CD-140-00003")
        response = client.get("/api/v1/vouchers/folio/cd-140-00003")
        assert response.status_code == 200
        assert response.json()["voucher_type"] == "rental"

    def test_other_site_voucher_is_not_found(self, client, db_session, catalog):
        voucher = make_material(db_session, folio="CD-210-00001", site_id=2)
        response = client.get(f"/api/v1/vouchers/{voucher.id}")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_copy_catalogue(self, client):
        response = client.get("/api/v1/vouchers/copies")
        assert response.status_code == 200
        copies = {c["color"]: c["recipient"] for c in response.json()}
        assert copies["roja"] == "BANCO DE MATERIAL"
        assert len(copies) == 6


class TestUpdates:

    def test_record_weight(self, client, db_session, catalog):
        voucher = make_material(db_session)
        response = client.patch(f"/api/v1/vouchers/{voucher.id}/weight", json={"weight_tons": "18.4"})
        assert response.status_code == 200
        assert response.json()["state"] == "issued"
        assert float(response.json()["material_detail"]["weight_tons"]) == 18.4

    def test_reconcile_folio(self, client, db_session, catalog):
        voucher = make_material(db_session, folio="TEMP-12345678")
        response = client.post(f"/api/v1/vouchers/{voucher.id}/reconcile-folio")
        assert response.status_code == 200
        assert response.json()["folio"] == "CD-140-00001"


class TestDocuments:

    def test_download_pdf(self, client, db_session, catalog):
        voucher = make_material(db_session)
        response = client.post(f"/api/v1/vouchers/{voucher.id}/documents", json={"copy_color": "verde"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == 'attachment; filename="CD-140-00001_Verde.pdf"'
        assert response.content.startswith(b"%PDF")

    def test_unknown_color_falls_back_to_blanco(self, client, db_session, catalog):
        voucher = make_material(db_session)
        response = client.post(f"/api/v1/vouchers/{voucher.id}/documents", json={"copy_color": "morada"})
        assert response.status_code == 200
        assert "CD-140-00001_Blanco.pdf" in response.headers["content-disposition"]

    def test_close_rental_and_download(self, client, db_session, catalog):
        voucher = make_rental(db_session)
        response = client.post(
            f"/api/v1/vouchers/{voucher.id}/documents",
            json={"closure": {"end_time": "2026-03-02T10:30:00", "trips": 2}},
        )
        assert response.status_code == 200
        assert response.headers["x-voucher-state"] == "completed"

        data = client.get(f"/api/v1/vouchers/{voucher.id}").json()
        assert data["state"] == "completed"
        assert data["rental_detail"]["total_hours"] == 2.5
        assert float(data["rental_detail"]["subtotal"]) == 1125.0

    def test_invalid_closure_returns_422(self, client, db_session, catalog):
        voucher = make_rental(db_session)
        response = client.post(
            f"/api/v1/vouchers/{voucher.id}/documents",
            json={"closure": {"end_time": "2026-03-02T07:00:00"}},
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_COMPLETION_INPUT"

    def test_closing_twice_differently_conflicts(self, client, db_session, catalog):
        voucher = make_rental(db_session)
        url = f"/api/v1/vouchers/{voucher.id}/documents"
        assert client.post(url, json={"closure": {"close_by_day": True}}).status_code == 200
        response = client.post(url, json={"closure": {"end_time": "2026-03-02T12:00:00"}})
        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_TRANSITION"

    def test_print_delivery(self, client, db_session, catalog, tmp_path, monkeypatch):
        monkeypatch.setattr("acarreos.services.delivery.settings.PRINT_SPOOL_DIR", str(tmp_path))
        voucher = make_material(db_session)
        response = client.post(
            f"/api/v1/vouchers/{voucher.id}/documents",
            json={"copy_color": "azul", "delivery": "print"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["channel"] == "print"
        assert data["recipient"] == "ADMINISTRADOR 1"
        assert (tmp_path / "CD-140-00001_Azul.pdf").exists()

    def test_print_after_weight_change_uses_new_weight(self, client, db_session, catalog, tmp_path, monkeypatch):
        blocked = tmp_path / "spool"
        blocked.write_text("no es un directorio")
        monkeypatch.setattr("acarreos.services.delivery.settings.PRINT_SPOOL_DIR", str(blocked))
        voucher = make_material(db_session)
        url = f"/api/v1/vouchers/{voucher.id}/documents"

        response = client.post(url, json={"copy_color": "azul", "delivery": "print"})
        assert response.status_code == 503
        assert response.json()["error_code"] == "DELIVERY_UNAVAILABLE"

        client.patch(f"/api/v1/vouchers/{voucher.id}/weight", json={"weight_tons": "14.5"})

        spool = tmp_path / "cola"
        monkeypatch.setattr("acarreos.services.delivery.settings.PRINT_SPOOL_DIR", str(spool))
        assert client.post(url, json={"copy_color": "azul", "delivery": "print"}).status_code == 200

        download = client.post(url, json={"copy_color": "azul"})
        assert (spool / "CD-140-00001_Azul.pdf").read_bytes() == download.content

    def test_retry_without_pending(self, client, db_session, catalog):
        voucher = make_material(db_session)
        response = client.post(f"/api/v1/vouchers/{voucher.id}/documents/retry", params={"copy_color": "azul"})
        assert response.status_code == 404

    def test_history_after_issue(self, client, db_session, catalog):
        voucher = make_rental(db_session)
        client.post(f"/api/v1/vouchers/{voucher.id}/documents", json={"closure": {"close_by_day": True}})
        response = client.get(f"/api/v1/vouchers/{voucher.id}/history")
        assert response.status_code == 200
        assert [e["event_type"] for e in response.json()["items"]] == ["rental_closed", "document_issued"]
