"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample users (campus identities)
  - 6 sample rides (mix of offering, pending, confirmed and completed)
  - pending ride requests against the open rides
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from src.domain.entities import Ride, RideRequest, utcnow
from src.domain.enums import VehicleType
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import RideModel, RideRequestModel, UserModel
from src.infrastructure.repositories import apply_entity


USERS = [
    {"id": "uid-aarav", "display_name": "Aarav Sharma", "email": "aarav@example.com"},
    {"id": "uid-priya", "display_name": "Priya Patel", "email": "priya@example.com"},
    {"id": "uid-rohan", "display_name": "Rohan Mehta", "email": "rohan@example.com"},
    {"id": "uid-sneha", "display_name": "Sneha Gupta", "email": "sneha@example.com"},
    {"id": "uid-vikram", "display_name": "Vikram Singh", "email": "vikram@example.com"},
    {"id": "uid-meera", "display_name": "Meera Nair", "email": "meera@example.com",
     "emergency_contact": "+91 98200 00000"},
]


def _sample_rides():
    now = utcnow()

    offer_hostel = Ride.offer(
        "uid-aarav",
        from_location="Hostel Block A",
        to_location="Central Library",
        date_time=now + timedelta(hours=2),
        shared_cost=30.0,
        vehicle_type=VehicleType.BIKE,
    )
    offer_station = Ride.offer(
        "uid-rohan",
        from_location="Main Gate",
        to_location="Railway Station",
        date_time=now + timedelta(hours=5),
        shared_cost=80.0,
        vehicle_type=VehicleType.SCOOTY,
    )
    request_market = Ride.request(
        "uid-sneha",
        from_location="Girls Hostel",
        to_location="City Market",
        date_time=now + timedelta(days=1),
        shared_cost=50.0,
        vehicle_type=VehicleType.SCOOTY,
    )

    confirmed = Ride.offer(
        "uid-vikram",
        from_location="Sports Complex",
        to_location="Airport",
        date_time=now + timedelta(hours=3),
        shared_cost=250.0,
        vehicle_type=VehicleType.BIKE,
    )
    confirmed.confirm_match("uid-vikram", "uid-meera", now=now)

    completed = Ride.offer(
        "uid-priya",
        from_location="Academic Block",
        to_location="Mall Road",
        date_time=now - timedelta(days=1),
        shared_cost=60.0,
        vehicle_type=VehicleType.SCOOTY,
    )
    completed.confirm_match("uid-priya", "uid-aarav", now=now - timedelta(days=1))
    completed.verify_otp("uid-priya", completed.ride_otp)
    completed.confirm_start("uid-priya")
    completed.confirm_start("uid-aarav")
    completed.confirm_completion("uid-priya")
    completed.confirm_completion("uid-aarav", now=now - timedelta(hours=20))

    cancelled = Ride.request(
        "uid-meera",
        from_location="Faculty Quarters",
        to_location="Hospital",
        date_time=now - timedelta(hours=6),
        shared_cost=40.0,
    )
    cancelled.cancel("uid-meera", now=now - timedelta(hours=7))

    return [offer_hostel, offer_station, request_market, confirmed, completed, cancelled]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        for u in USERS:
            session.add(UserModel(**u))
        await session.flush()
        print(f"  Created {len(USERS)} users")

        # ── Rides ─────────────────────────────────────────────────────
        ride_models = []
        for ride in _sample_rides():
            model = RideModel()
            apply_entity(model, ride)
            session.add(model)
            ride_models.append(model)
        await session.flush()
        print(f"  Created {len(ride_models)} rides")

        # ── Ride requests (against the open rides) ────────────────────
        bids = [
            (ride_models[0], "uid-priya"),
            (ride_models[0], "uid-sneha"),
            (ride_models[1], "uid-meera"),
            (ride_models[2], "uid-rohan"),
        ]
        for ride_model, requester_id in bids:
            model = RideRequestModel()
            apply_entity(model, RideRequest(ride_id=ride_model.id, requester_id=requester_id))
            session.add(model)
        await session.flush()
        print(f"  Created {len(bids)} ride requests")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
