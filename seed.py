"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

The records below are written in the shape of the old document-store
export (camelCase keys, display strings for numbers) and go through the
same normalisers used for imports, so the script doubles as a smoke test
for them.

Creates:
  - 4 vehicles (one in maintenance)
  - 3 drivers, each holding a vehicle
  - 3 requesters and 1 admin
  - 5 trips (PENDING, APPROVED, IN-PROGRESS, COMPLETED, CANCELLED)
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import text

from fleetops.config import settings
from fleetops.domain.documents import normalize_many
from fleetops.domain.enums import DriverStatus, TripStatus, VehicleStatus
from fleetops.domain.serials import next_serial
from fleetops.infrastructure.database import async_session_factory, engine
from fleetops.infrastructure.models import TripModel, UserModel, VehicleModel

TODAY = date.today()

VEHICLES = [
    {"vehicleNumber": "CAB-1234", "model": "Toyota Axio", "type": "car", "seats": "4",
     "requiredLicense": "B", "status": "available", "initialMileage": "12,400 km",
     "lastServiceMileage": "10000", "licenseExpiry": (TODAY + timedelta(days=200)).isoformat(),
     "insuranceExpiry": (TODAY + timedelta(days=45)).isoformat()},
    {"vehicleNumber": "KX-4455", "model": "Toyota KDH", "type": "van", "seats": "14",
     "requiredLicense": "D", "status": "available", "initialMileage": "88,150 km",
     "lastServiceMileage": "85000", "licenseExpiry": (TODAY + timedelta(days=30)).isoformat(),
     "insuranceExpiry": (TODAY + timedelta(days=300)).isoformat()},
    {"vehicleNumber": "PH-7788", "model": "Nissan Caravan", "type": "van", "seats": "12",
     "requiredLicense": "D", "status": "maintenance", "initialMileage": "120000",
     "lastServiceMileage": "118000"},
    {"vehicleNumber": "BBC-2020", "model": "Suzuki Wagon R", "type": "car", "seats": "4",
     "requiredLicense": "B", "status": "available", "initialMileage": "5,000 km"},
]

DRIVERS = [
    {"fullName": "Nimal Perera", "email": "nimal@example.com", "phone": "0771234567",
     "licenseType": "D", "vehicle": "KX-4455"},
    {"fullName": "Sunil Silva", "email": "sunil@example.com", "phone": "0712345678",
     "licenseType": "B", "vehicle": "CAB-1234"},
    {"fullName": "Kamal Fernando", "email": "kamal@example.com", "phone": "0759876543",
     "licenseType": "D", "vehicle": "BBC-2020"},
]

USERS = [
    {"fullName": "Anjali Wickramasinghe", "email": "anjali@example.com", "role": "user"},
    {"fullName": "Ruwan Jayasuriya", "email": "ruwan@example.com", "role": "user"},
    {"fullName": "Dilani Gunawardena", "email": "dilani@example.com", "role": "user"},
    {"fullName": "Fleet Admin", "email": "admin@example.com", "role": "admin"},
]

TRIPS = [
    {"customer": "Anjali Wickramasinghe", "pickupLocation": "Colombo Fort",
     "destination": "Kandy", "destinations": [{"address": "Kadawatha"}, {"name": "Nittambuwa"}],
     "tripDate": (TODAY + timedelta(days=2)).isoformat(), "time": "08:30",
     "passengers": "3", "distance": "115 km", "cost": "LKR 12,000", "status": "pending"},
    {"customer": "Ruwan Jayasuriya", "pickupLocation": "Nugegoda", "destination": "Galle",
     "tripDate": TODAY.isoformat(), "time": "10:00", "passengers": "8",
     "vehicleNumber": "KX-4455", "driverName": "Nimal Perera",
     "distance": "126 km", "status": "approved"},
    {"customer": "Dilani Gunawardena", "pickupLocation": "Dehiwala",
     "destination": "Katunayake Airport", "tripDate": TODAY.isoformat(), "time": "06:00",
     "passengers": "2", "vehicleNumber": "CAB-1234", "driverName": "Sunil Silva",
     "startMeter": "12,400", "status": "in_progress"},
    {"customer": "Anjali Wickramasinghe", "pickupLocation": "Maharagama",
     "destination": "Colombo 07", "tripDate": (TODAY - timedelta(days=3)).isoformat(),
     "passengers": "1", "vehicle": "BBC-2020", "driverName": "Kamal Fernando",
     "startMeter": "5000", "endMeter": "5,042", "kmRun": "42 km", "status": "completed"},
    {"customer": "Ruwan Jayasuriya", "pickupLocation": "Kottawa", "destination": "Negombo",
     "tripDate": (TODAY + timedelta(days=5)).isoformat(), "passengers": "2",
     "cancelReason": "Meeting postponed", "status": "cancelled"},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM vehicles"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Vehicles ──────────────────────────────────────────────────
        vehicles = {}
        for data in normalize_many(VEHICLES, "vehicle"):
            data.setdefault("service_interval", float(settings.default_service_interval_km))
            m = VehicleModel(**data)
            session.add(m)
            vehicles[m.number] = m
        await session.flush()
        print(f"  Created {len(vehicles)} vehicles")

        # ── Drivers ───────────────────────────────────────────────────
        drivers = {}
        for data in normalize_many(DRIVERS, "driver"):
            vehicle = vehicles[data["vehicle_number"]]
            m = UserModel(**data, vehicle_id=vehicle.id)
            session.add(m)
            drivers[m.name] = m
            if vehicle.status == VehicleStatus.AVAILABLE:
                vehicle.status = VehicleStatus.ASSIGNED
        await session.flush()
        print(f"  Created {len(drivers)} drivers")

        # ── Requesters / admin ────────────────────────────────────────
        users = {}
        for data in normalize_many(USERS, "user"):
            m = UserModel(**data)
            session.add(m)
            users[m.name] = m
        await session.flush()
        print(f"  Created {len(users)} users")

        # ── Trips ─────────────────────────────────────────────────────
        serials: list[str] = []
        for data in normalize_many(TRIPS, "trip"):
            requester = users[data.pop("requester_name")]
            driver = drivers.get(data.get("driver_name"))
            vehicle = vehicles.get(data.get("vehicle_number"))
            serial = next_serial(serials, settings.serial_prefix, settings.serial_width)
            serials.append(serial)
            trip = TripModel(
                **data,
                serial_number=serial,
                requester_id=requester.id,
                requester_name=requester.name,
                requester_email=requester.email,
                vehicle_id=vehicle.id if vehicle else None,
                driver_id=driver.id if driver else None,
            )
            session.add(trip)
            await session.flush()
            if driver is not None and trip.status == TripStatus.IN_PROGRESS:
                driver.current_trip_id = trip.id
                driver.status = DriverStatus.IN_USE
        print(f"  Created {len(serials)} trips")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
