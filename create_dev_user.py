import asyncio
import sys
import os

# Add project root to path
sys.path.append(os.getcwd())

from ridehub.infra.database import close_db, init_db
from ridehub.services.auth.jwt import create_access_token

DEV_USER_ID = "dev-rider"
DEV_TRIP_ID = "dev-trip"

async def main():
    # init_db also applies migrations/init.sql
    db = await init_db()
    print("Connected to DB")

    await db.execute(
        """
        INSERT INTO users (id, name, avatar)
        VALUES ($1, 'Dev Rider', NULL)
        ON CONFLICT (id) DO NOTHING
        """,
        DEV_USER_ID,
    )
    await db.execute(
        """
        INSERT INTO trips (id, organizer_id, title, start_location, end_location, status)
        VALUES ($1, $2, 'Dev loop', $3::jsonb, $4::jsonb, 'planning')
        ON CONFLICT (id) DO NOTHING
        """,
        DEV_TRIP_ID,
        DEV_USER_ID,
        '{"name": "Start", "lat": 28.0, "lng": 77.0}',
        '{"name": "Finish", "lat": 28.01, "lng": 77.01}',
    )
    print(f"User {DEV_USER_ID} and trip {DEV_TRIP_ID} created")
    print(f"Access token: {create_access_token(DEV_USER_ID)}")

    await close_db()

if __name__ == "__main__":
    asyncio.run(main())
