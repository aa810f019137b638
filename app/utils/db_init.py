"""
Database Initialization Utility

This module handles automatic creation of:
- PostgreSQL extensions
- All database tables
- Default subscription plans

All operations are idempotent - they won't fail if objects already exist.
"""

from app import db
from sqlalchemy import text
import logging

logger = logging.getLogger(__name__)


def create_postgres_extensions():
    """Create PostgreSQL extensions if they don't exist"""
    if db.engine.dialect.name != 'postgresql':
        return
    try:
        db.session.execute(text("CREATE EXTENSION IF NOT EXISTS \"uuid-ossp\""))
        db.session.commit()
        logger.info("PostgreSQL extensions created/verified successfully")
    except Exception as e:
        db.session.rollback()
        logger.warning(f"Could not create PostgreSQL extensions (may already exist): {e}")


def create_all_tables():
    """Create all database tables if they don't exist"""
    try:
        # Import all models to ensure SQLAlchemy knows about them
        import app.models  # noqa: F401

        db.create_all()
        logger.info("All database tables created/verified successfully")
    except Exception as e:
        logger.error(f"Error creating tables: {e}")
        raise


def seed_subscription_plans():
    """Insert the default plans when the plans table is empty"""
    from app.models.billing import SubscriptionPlan, DEFAULT_PLANS

    if SubscriptionPlan.query.count() > 0:
        return 0

    for plan in DEFAULT_PLANS:
        db.session.add(SubscriptionPlan(**plan))
    db.session.commit()
    logger.info(f"Seeded {len(DEFAULT_PLANS)} subscription plans")
    return len(DEFAULT_PLANS)


def initialize_database():
    """
    Main initialization function that sets up the entire database.
    This function is idempotent and safe to call multiple times.
    """
    try:
        logger.info("Starting database initialization...")

        # Step 1: Create PostgreSQL extensions
        create_postgres_extensions()

        # Step 2: Create all tables
        create_all_tables()

        # Step 3: Default plans
        seed_subscription_plans()

        logger.info("Database initialization completed successfully!")
        return True
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        db.session.rollback()
        return False
