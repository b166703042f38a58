#!/usr/bin/env python3
"""Setup script for the storefront API: migrate the database and seed sample data."""

import asyncio
import logging
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from sqlalchemy import func, select  # noqa: E402

from storefront.core.database import async_session_factory, close_db  # noqa: E402
from storefront.models import Product, Tour, TourDate  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_database() -> None:
    """Bring the schema up to the latest Alembic revision."""
    logger.info("Running database migrations...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")

    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create a sample tour with upcoming dates and a few shop products."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing_tours = await db.execute(select(func.count(Tour.id)))
            if existing_tours.scalar() > 0:
                logger.info("Sample data already exists, skipping...")
                return

            tour = Tour(
                name="Mangrove Canoe Trail",
                description="Guided canoe trip through the estuary mangroves with a birding stop",
                price=Decimal("450.00"),
                duration="3 hours",
                location="Umhlanga Lagoon",
                max_participants=60,
                is_active=True
            )
            db.add(tour)
            await db.flush()

            first_date = date.today() + timedelta(days=7)
            for week in range(4):
                db.add(TourDate(
                    tour_id=tour.id,
                    available_date=first_date + timedelta(days=week * 7),
                    max_bookings=12,
                    current_bookings=0,
                    is_available=True
                ))

            db.add_all([
                Product(
                    name="Reusable Water Bottle",
                    category="Gear",
                    price=Decimal("129.99"),
                    stock_quantity=40
                ),
                Product(
                    name="Indigenous Seedling Pack",
                    category="Garden",
                    price=Decimal("85.00"),
                    stock_quantity=25
                ),
            ])

            await db.commit()
            logger.info("Sample data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise

    await close_db()


def main() -> None:
    """Main setup function."""
    logger.info("Starting storefront API setup...")

    setup_database()
    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn storefront.main:app --reload")


if __name__ == "__main__":
    main()
