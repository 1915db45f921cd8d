"""Unit tests for legacy document normalisation and trip serials."""

from datetime import date

import pytest

from fleetops.domain.documents import (
    normalize_driver_document,
    normalize_many,
    normalize_trip_document,
    normalize_vehicle_document,
    to_number,
)
from fleetops.domain.enums import (
    ConsentState,
    DriverStatus,
    LicenseClass,
    TripStatus,
    UserRole,
    VehicleStatus,
)
from fleetops.domain.serials import next_serial, parse_serial
from fleetops.errors import GuardViolation


class TestScalars:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("LKR 1,250.50", 1250.5),
            ("12.5 km", 12.5),
            (42, 42.0),
            ("N/A", None),
            ("", None),
            (None, None),
        ],
    )
    def test_to_number(self, raw, expected):
        assert to_number(raw) == expected


class TestTripDocuments:
    def test_legacy_spellings_are_mapped(self):
        doc = {
            "serialNumber": "TRP-014",
            "customer": "Anjali",
            "userId": "7",
            "pickupLocation": "Colombo Fort",
            "destination": "Kandy",
            "destinations": [{"address": "Kadawatha"}, {"name": "Kegalle"}, "  "],
            "tripDate": "2026-03-10T08:30:00",
            "passengers": "3",
            "vehicle": "KX-4455",
            "driverName": "Nimal",
            "cost": "LKR 12,000",
            "distance": "115 km",
            "startMeter": "1,000",
            "endMeter": "1150",
            "status": "in_progress",
        }
        trip = normalize_trip_document(doc)

        assert trip["serial_number"] == "TRP-014"
        assert trip["requester_name"] == "Anjali"
        assert trip["requester_id"] == 7
        assert trip["pickup"] == "Colombo Fort"
        assert trip["stops"] == ["Kadawatha", "Kegalle"]
        assert trip["date"] == date(2026, 3, 10)
        assert trip["passengers"] == 3
        assert trip["vehicle_number"] == "KX-4455"
        assert trip["cost"] == 12000.0
        assert trip["distance_km"] == 115.0
        assert trip["odometer_start"] == 1000.0
        assert trip["status"] == TripStatus.IN_PROGRESS

    def test_numeric_vehicle_reference_is_an_id(self):
        trip = normalize_trip_document({"vehicle": 12, "status": "approved"})
        assert trip["vehicle_id"] == 12
        assert "vehicle_number" not in trip

    def test_missing_status_defaults_to_pending(self):
        assert normalize_trip_document({})["status"] == TripStatus.PENDING

    def test_unknown_status_is_refused(self):
        with pytest.raises(GuardViolation):
            normalize_trip_document({"status": "teleported"})

    def test_merge_proposal_is_normalised(self):
        trip = normalize_trip_document(
            {
                "status": "awaiting_merge_approval",
                "mergeProposal": {
                    "candidateTripId": "21",
                    "consentA": "ACCEPTED",
                    "masterPreviousStatus": "approved",
                },
            }
        )
        proposal = trip["merge_proposal"]
        assert proposal["candidate_trip_id"] == 21
        assert proposal["consent_a"] == ConsentState.ACCEPTED.value
        assert proposal["consent_b"] == ConsentState.PENDING.value
        assert proposal["master_previous_status"] == TripStatus.APPROVED.value


class TestFleetDocuments:
    def test_vehicle_document(self):
        vehicle = normalize_vehicle_document(
            {
                "vehicleNumber": "PH-7788",
                "status": "maintenance",
                "seats": "12",
                "requiredLicense": "d",
                "initialMileage": "120,000 km",
                "insuranceExpiry": "2026-12-31",
            }
        )
        assert vehicle["number"] == "PH-7788"
        assert vehicle["status"] == VehicleStatus.IN_MAINTENANCE
        assert vehicle["seats"] == 12
        assert vehicle["required_license"] == LicenseClass.D
        assert vehicle["initial_odometer"] == 120000.0
        assert vehicle["insurance_expiry"] == date(2026, 12, 31)

    def test_driver_document_defaults_role(self):
        driver = normalize_driver_document(
            {"fullName": "Nimal Perera", "email": "nimal@example.com", "licenseType": "D", "vehicle": "KX-4455"}
        )
        assert driver["role"] == UserRole.DRIVER
        assert driver["status"] == DriverStatus.AVAILABLE
        assert driver["vehicle_number"] == "KX-4455"

    def test_normalize_many_dispatches_on_kind(self):
        users = normalize_many(
            [{"name": "Admin", "email": "a@example.com", "role": "admin", "status": "available"}],
            "user",
        )
        assert users[0]["role"] == UserRole.ADMIN
        assert "status" not in users[0]


class TestSerials:
    def test_first_serial(self):
        assert next_serial([]) == "TRP-001"

    def test_follows_highest_and_ignores_old_formats(self):
        recent = ["TRP-004", "TRP-20260310-083000-412", "TRP-010", None, "OLD-77"]
        assert parse_serial("TRP-20260310-083000-412") is None
        assert next_serial(recent) == "TRP-011"

    def test_width_grows_past_999(self):
        assert next_serial(["TRP-999"]) == "TRP-1000"
