"""Integration tests for API endpoints."""

import json

import pytest

TOMORROW = "2030-06-11"


@pytest.mark.asyncio
async def test_availability_check_and_hold(test_client, holds):
    response = await test_client.post("/availability-check", json={
        "facilityId": "hall-1",
        "sessionId": "session-a",
        "action": "hold",
        "packageType": "HOURLY",
        "startDate": TOMORROW,
        "startTime": "10:00",
        "endTime": "12:00",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["available"] is True
    assert data["conflictReason"] is None
    assert data["holdExpiry"] is not None
    assert data["package"] == {
        "type": "HOURLY",
        "startDate": TOMORROW,
        "endDate": TOMORROW,
        "startTime": "10:00:00.000",
        "endTime": "12:00:00.000",
    }
    assert holds.count() == 1


@pytest.mark.asyncio
async def test_availability_check_reports_other_sessions_hold(test_client):
    body = {
        "facilityId": "hall-1",
        "packageType": "FULL_DAY",
        "startDate": TOMORROW,
    }
    await test_client.post("/availability-check", json={**body, "sessionId": "session-b", "action": "hold"})

    response = await test_client.post("/availability-check", json={**body, "sessionId": "session-a"})

    data = response.json()
    assert data["available"] is False
    assert data["conflictReason"] == "temporary_hold"
    assert data["alternatives"] == []
    assert data["holdExpiry"] is None


@pytest.mark.asyncio
async def test_availability_alternatives(test_client, cms):
    cms.add_booking(facility=1, startDate=TOMORROW, startTime="08:00:00.000", endTime="12:00:00.000")

    response = await test_client.post("/availability-check", json={
        "facilityId": "hall-1",
        "sessionId": "session-a",
        "packageType": "HALF_DAY",
        "halfDayPeriod": "morning",
        "startDate": TOMORROW,
    })

    data = response.json()
    assert data["conflictReason"] == "existing_booking"
    assert data["alternatives"][0] == {
        "type": "HOURLY",
        "startTime": "12:00:00.000",
        "endTime": "13:00:00.000",
        "available": True,
        "displayTime": "12:00 - 13:00",
    }


@pytest.mark.asyncio
async def test_availability_release(test_client, holds):
    hold = {"facilityId": "hall-1", "sessionId": "session-a", "packageType": "FULL_DAY", "startDate": TOMORROW}
    await test_client.post("/availability-check", json={**hold, "action": "hold"})

    response = await test_client.post("/availability-check", json={
        "facilityId": "hall-1", "sessionId": "session-a", "action": "release"
    })

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert holds.count() == 0


@pytest.mark.asyncio
async def test_availability_missing_parameters(test_client):
    response = await test_client.post("/availability-check", json={"facilityId": "hall-1", "sessionId": "s"})

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "VALIDATION_ERROR"
    assert data["success"] is False
    assert "violations" in data


@pytest.mark.asyncio
async def test_availability_invalid_package_type(test_client):
    response = await test_client.post("/availability-check", json={
        "facilityId": "hall-1", "sessionId": "s", "packageType": "WEEKLY", "startDate": TOMORROW
    })
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_PACKAGE_TYPE"


@pytest.mark.asyncio
async def test_availability_rejects_bad_hourly_times(test_client, holds):
    body = {"facilityId": "hall-1", "sessionId": "s", "packageType": "HOURLY", "startDate": TOMORROW}

    reversed_times = await test_client.post(
        "/availability-check", json={**body, "action": "hold", "startTime": "12:00", "endTime": "08:00"}
    )
    assert reversed_times.status_code == 400
    assert reversed_times.json()["error"] == "INVALID_TIME_RANGE"
    assert holds.count() == 0

    night = await test_client.post("/availability-check", json={**body, "startTime": "02:00", "endTime": "03:00"})
    assert night.status_code == 400
    assert night.json()["error"] == "OUTSIDE_OPERATING_HOURS"


@pytest.mark.asyncio
async def test_availability_unknown_facility(test_client):
    response = await test_client.post("/availability-check", json={
        "facilityId": "missing", "sessionId": "s", "packageType": "FULL_DAY", "startDate": TOMORROW
    })
    assert response.status_code == 404
    assert response.json()["error"] == "FACILITY_NOT_FOUND"


@pytest.mark.asyncio
async def test_month_availability(test_client, cms):
    cms.add_booking(facility=1, startDate="2030-06-15", startTime="10:00:00.000", endTime="12:00:00.000")

    response = await test_client.get(
        "/facilities/availability", params={"facilityId": "hall-1", "year": 2030, "month": 6}
    )

    assert response.status_code == 200
    dates = response.json()["dates"]
    assert len(dates) == 30
    assert dates["2030-06-15"]["partiallyAvailable"] is True
    assert dates["2030-06-15"]["bookedTimeSlots"] == [{"startTime": "10:00:00.000", "endTime": "12:00:00.000"}]


@pytest.mark.asyncio
async def test_month_availability_bad_month(test_client):
    response = await test_client.get(
        "/facilities/availability", params={"facilityId": "hall-1", "year": 2030, "month": 13}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_pricing_quote(test_client):
    response = await test_client.post("/pricing/quote", json={
        "facilityId": "hall-1",
        "startDate": TOMORROW,
        "startTime": "09:00",
        "endTime": "14:00",
        "equipment": ["PA System"],
        "mineralWater": 5,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["rateCard"] == "flat"
    assert data["totalPrice"] == 355.0
    assert [item["type"] for item in data["breakdown"]] == ["FACILITY", "EQUIPMENT", "CONSUMABLE"]
    assert data["breakdown"][0]["description"] == "Pakej separuh hari (5 jam)"
    assert data["durationHours"] == 5


@pytest.mark.asyncio
async def test_pricing_quote_sport(test_client):
    response = await test_client.post("/pricing/quote", json={
        "facilityId": "court-1", "startDate": TOMORROW, "startTime": "17:00", "endTime": "22:00"
    })

    data = response.json()
    assert data["rateCard"] == "day_night"
    assert data["totalPrice"] == 100.0


@pytest.mark.asyncio
async def test_create_booking_json(test_client, cms, sample_booking_data):
    response = await test_client.post("/bookings/create", json=sample_booking_data)

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["bookingNumber"] == "UTC-2030-0001"
    assert data["totalPrice"] == 310.0
    assert data["filesUploaded"] == 0
    assert data["data"]["bookingStatus"] == "PENDING"
    assert len(cms.bookings) == 1


@pytest.mark.asyncio
async def test_create_booking_multipart(test_client, cms, sample_booking_data):
    response = await test_client.post(
        "/bookings/create",
        data={"data": json.dumps(sample_booking_data)},
        files=[
            ("dokumen_berkaitan", ("surat.pdf", b"%PDF-1.4", "application/pdf")),
            ("dokumen_berkaitan", ("lampiran.pdf", b"%PDF-1.4", "application/pdf")),
        ],
    )

    assert response.status_code == 201
    assert response.json()["filesUploaded"] == 2
    assert cms.bookings[0]["dokumen_berkaitan"] == [upload["id"] for upload in cms.uploads]


@pytest.mark.asyncio
async def test_create_booking_multipart_without_data(test_client):
    response = await test_client.post(
        "/bookings/create",
        data={"other": "x"},
        files=[("dokumen_berkaitan", ("surat.pdf", b"%PDF", "application/pdf"))],
    )
    assert response.status_code == 400
    assert response.json()["error"] == "MISSING_DATA"


@pytest.mark.asyncio
async def test_create_booking_invalid_body(test_client, sample_booking_data):
    response = await test_client.post("/bookings/create", json={**sample_booking_data, "email": "not-an-email"})

    assert response.status_code == 400
    data = response.json()
    assert data["error"] == "VALIDATION_ERROR"
    assert data["violations"][0]["path"] == "email"


@pytest.mark.asyncio
async def test_create_booking_conflict(test_client, cms, sample_booking_data):
    cms.add_booking(facility=1, startDate=TOMORROW, startTime="11:00:00.000", endTime="12:00:00.000")

    response = await test_client.post("/bookings/create", json=sample_booking_data)

    assert response.status_code == 409
    data = response.json()
    assert data["error"] == "TIME_CONFLICT"
    assert data["details"]["startTime"] == "11:00:00.000"


@pytest.mark.asyncio
async def test_create_booking_rule_violation(test_client, sample_booking_data):
    response = await test_client.post(
        "/bookings/create", json={**sample_booking_data, "startTime": "06:00", "endTime": "09:00"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "OUTSIDE_OPERATING_HOURS"


@pytest.mark.asyncio
async def test_create_multi_day_booking_with_reversed_times(test_client, cms, sample_booking_data):
    response = await test_client.post(
        "/bookings/create",
        json={
            **sample_booking_data,
            "packageType": "MULTI_DAY",
            "endDate": "2030-06-12",
            "startTime": "20:00",
            "endTime": "09:00",
        },
    )

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_TIME_RANGE"
    assert cms.bookings == []


@pytest.mark.asyncio
async def test_create_booking_simple_flow_rules(test_client, cms, sample_booking_data):
    simple = {**sample_booking_data, "bookingFlow": "simple"}

    short = await test_client.post("/bookings/create", json={**simple, "startTime": "10:00", "endTime": "11:00"})
    assert short.status_code == 400
    assert short.json()["error"] == "BELOW_MINIMUM_DURATION"

    same_day = await test_client.post(
        "/bookings/create", json={**simple, "startDate": "2030-06-10", "endDate": "2030-06-10"}
    )
    assert same_day.status_code == 400
    assert same_day.json()["error"] == "ADVANCE_NOTICE_REQUIRED"

    assert cms.bookings == []
    accepted = await test_client.post("/bookings/create", json=simple)
    assert accepted.status_code == 201


@pytest.mark.asyncio
async def test_search_booking(test_client, cms):
    cms.add_booking(
        facility={"id": 1, "name": "Dewan Utama"},
        bookingNumber="UTC-2030-0004",
        email="siti@example.com",
        name="Siti",
        startDate="2030-06-20",
        totalPrice=250,
    )

    response = await test_client.get("/bookings/search", params={"email": "siti@example.com", "id": "UTC-2030-0004"})

    assert response.status_code == 200
    booking = response.json()["booking"]
    assert booking["bookingNumber"] == "UTC-2030-0004"
    assert booking["facility"] == {"name": "Dewan Utama"}
    assert booking["totalPrice"] == 250.0


@pytest.mark.asyncio
async def test_search_booking_not_found(test_client):
    response = await test_client.get("/bookings/search", params={"email": "siti@example.com", "id": "UTC-2030-0404"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_search_booking_requires_parameters(test_client):
    response = await test_client.get("/bookings/search", params={"email": "siti@example.com"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_update_status(test_client, cms, mailer):
    record = cms.add_booking(facility=1, bookingNumber="UTC-2030-0002", email="siti@example.com", name="Siti")

    response = await test_client.put("/admin/bookings/update", json={
        "documentId": record["documentId"],
        "bookingStatus": "APPROVED",
        "notifyApplicant": True,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["data"]["bookingStatus"] == "APPROVED"
    assert data["data"]["paymentStatus"] == "VERIFIED"
    assert data["emailSent"] is True
    assert len(mailer.sent) == 1


@pytest.mark.asyncio
async def test_admin_update_status_accepts_legacy_spelling(test_client, cms):
    record = cms.add_booking(facility=1, bookingStatus="APPROVED")

    response = await test_client.put("/admin/bookings/update", json={
        "documentId": record["documentId"], "bookingStatus": "CANCELED"
    })

    assert response.status_code == 200
    assert response.json()["data"]["bookingStatus"] == "CANCELLED"


@pytest.mark.asyncio
async def test_admin_update_illegal_transition(test_client, cms):
    record = cms.add_booking(facility=1, bookingStatus="REJECTED")

    response = await test_client.put("/admin/bookings/update", json={
        "documentId": record["documentId"], "bookingStatus": "APPROVED"
    })

    assert response.status_code == 409
    assert response.json()["error"] == "INVALID_STATUS_TRANSITION"


@pytest.mark.asyncio
async def test_payment_upload_multipart(test_client, cms):
    record = cms.add_booking(
        facility=1, bookingNumber="UTC-2030-0003", email="siti@example.com", bookingStatus="AWAITING_PAYMENT"
    )

    response = await test_client.post(
        "/bookings/payment-upload",
        data={"bookingId": "UTC-2030-0003", "email": "siti@example.com"},
        files={"paymentProof": ("resit.png", b"\x89PNG", "image/png")},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["data"]["bookingStatus"] == "REVIEW_PAYMENT"
    assert record["paymentStatus"] == "PAID"


@pytest.mark.asyncio
async def test_payment_upload_json_not_awaiting(test_client, cms):
    cms.add_booking(facility=1, bookingNumber="UTC-2030-0003", email="siti@example.com")

    response = await test_client.post("/bookings/payment-upload", json={
        "bookingId": "UTC-2030-0003", "email": "siti@example.com", "paymentProof": "ref"
    })

    assert response.status_code == 400
    assert response.json()["error"] == "NOT_AWAITING_PAYMENT"


@pytest.mark.asyncio
async def test_payment_upload_multipart_requires_file(test_client):
    response = await test_client.post(
        "/bookings/payment-upload",
        data={"bookingId": "UTC-2030-0003", "email": "siti@example.com"},
        files={"other": ("x.txt", b"x", "text/plain")},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "MISSING_FILE"


@pytest.mark.asyncio
async def test_booking_status_notification(test_client, mailer):
    response = await test_client.post("/notifications/booking-status", json={
        "email": "siti@example.com",
        "name": "Siti",
        "bookingId": "UTC-2030-0001",
        "status": "REJECTED",
        "reason": "Tarikh penuh",
        "eventName": "Majlis",
        "startDate": "2030-06-20",
    })

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Notification sent successfully",
        "emailSent": True,
        "smsSent": False,
    }


@pytest.mark.asyncio
async def test_notification_delivery_failure_still_succeeds(test_client, mailer):
    mailer.fail = True
    response = await test_client.post("/notifications/payment-approval", json={
        "email": "siti@example.com",
        "name": "Siti",
        "bookingId": "UTC-2030-0001",
        "eventName": "Majlis",
        "startDate": "2030-06-20",
        "totalPrice": 310,
        "facility": "Dewan Utama",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["emailSent"] is False


@pytest.mark.asyncio
async def test_notification_validation(test_client):
    response = await test_client.post("/notifications/payment-approval", json={
        "email": "siti@example.com", "name": "Siti", "bookingId": "1",
        "eventName": "Majlis", "startDate": "2030-06-20", "totalPrice": 0, "facility": "Dewan",
    })
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_metrics_endpoint(test_client):
    """Test the Prometheus metrics endpoint."""
    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "# HELP" in response.text
