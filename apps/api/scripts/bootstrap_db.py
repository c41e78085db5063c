"""Create the database schema for local development."""
from __future__ import annotations

import asyncio

from app.db.session import engine
from app.models import VideoSession  # noqa: F401 - registers the table
from app.models.base import Base


async def create_schema() -> None:
	"""Create the database schema if it does not already exist."""

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
	await create_schema()
	await engine.dispose()
	print("Database schema ensured.")


if __name__ == "__main__":
	asyncio.run(main())
