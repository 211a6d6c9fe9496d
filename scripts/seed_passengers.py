"""Seed a set of demo passengers into the passenger registry.

Usage: python -m scripts.seed_passengers [--count 40] [--seed 7]
"""
import argparse
import asyncio
import random
import sys
sys.path.insert(0, ".")

from sqlalchemy import select
from app.database import async_session_factory, engine
from app.models.passenger import Passenger
from app.services.candidate_pool import SEAT_TYPES

FIRST_NAMES = [
    "Aarav", "Priya", "Rohan", "Ananya", "Vikram", "Meera", "Arjun", "Kavya",
    "Ishaan", "Diya", "Kabir", "Sneha", "Rahul", "Pooja", "Aditya", "Nisha",
]


def demo_passengers(count: int, seed: int) -> list[dict]:
    rng = random.Random(seed)
    passengers = []
    for i in range(count):
        passengers.append({
            "name": f"{rng.choice(FIRST_NAMES)} {chr(65 + i % 26)}.",
            "pnr": f"{4100000000 + i:010d}",
            "seat_type": rng.choice(SEAT_TYPES),
            "coach_index": rng.randint(0, 17),
            "group_size": 1 if rng.random() < 0.6 else rng.randint(2, 5),
        })
    return passengers


async def seed(count: int, seed_value: int):
    async with async_session_factory() as session:
        for p in demo_passengers(count, seed_value):
            existing = await session.execute(
                select(Passenger).where(Passenger.pnr == p["pnr"])
            )
            if existing.scalar_one_or_none() is None:
                session.add(Passenger(**p))
                print(f"  Seeded passenger {p['pnr']}: {p['name']} coach {p['coach_index']}")
            else:
                print(f"  PNR {p['pnr']} already registered, skipping.")
        await session.commit()
    await engine.dispose()
    print("Done seeding passengers.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo passengers")
    parser.add_argument("--count", type=int, default=40)
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()
    asyncio.run(seed(args.count, args.seed))
