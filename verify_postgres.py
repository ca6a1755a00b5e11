import asyncio
import asyncpg

from rental_admin.app.core.config import settings

# asyncpg connect needs the DSN without the SQLAlchemy driver suffix
db_url = settings.database_url.replace("+asyncpg", "")

print(f"Testing connection to: {db_url.split('@')[-1]}")

async def check_db():
    try:
        conn = await asyncpg.connect(db_url)
        print("✅ Connection Successful!")
        for table in ("bookings", "reservations", "vehicles", "customers"):
            exists = await conn.fetchval("SELECT to_regclass($1) IS NOT NULL", table)
            print(f"   {'✅' if exists else '⚠️ '} table {table}")
        await conn.close()
        raise SystemExit(0)
    except (OSError, asyncpg.PostgresError) as e:
        print(f"❌ Connection Failed: {e}")
        raise SystemExit(1)

if __name__ == "__main__":
    asyncio.run(check_db())
