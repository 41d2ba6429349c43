"""
Database Initialization Utility

This module handles automatic creation of:
- PostgreSQL extensions
- All database tables (with their ENUM types)

All operations are idempotent - they won't fail if objects already exist.
"""

from ethiomaids import db
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)


def create_postgres_extensions():
    """Create PostgreSQL extensions if they don't exist"""
    if db.engine.dialect.name != 'postgresql':
        logger.info(f"Skipping PostgreSQL extensions on {db.engine.dialect.name}")
        return
    try:
        # pg_trgm backs the ILIKE searches on names, titles and WhatsApp content
        db.session.execute(text("CREATE EXTENSION IF NOT EXISTS pg_trgm"))
        db.session.commit()
        logger.info("PostgreSQL extensions created/verified successfully")
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"Could not create PostgreSQL extensions (may already exist): {e}")


def create_all_tables():
    """Create all database tables if they don't exist"""
    try:
        # Import all models to ensure SQLAlchemy knows about them
        from ethiomaids import models  # noqa: F401

        # Create all tables (idempotent - won't recreate existing tables or ENUM types)
        db.create_all()
        logger.info("All database tables created/verified successfully")
    except SQLAlchemyError as e:
        logger.error(f"Error creating tables: {e}")
        raise


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

        logger.info("Database initialization completed successfully!")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        db.session.rollback()
        return False
