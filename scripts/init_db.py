# scripts/init_db.py
import sys
from pathlib import Path

from sqlalchemy import text

# Ensure project root is on the path when running this script directly
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio

from opme_core.infrastructure.database.session import create_schema, get_engine


async def init_db():
    engine = get_engine()
    async with engine.begin() as conn:
        result = await conn.execute(text("SELECT 1"))
        print("DB Connected:", result.scalar())
    await create_schema(engine)
    print("Audit tables ready")
    await engine.dispose()


asyncio.run(init_db())
