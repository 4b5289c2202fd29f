from app.db.base import Base, engine, SessionLocal
import logging

logger = logging.getLogger(__name__)


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def create_tables(bind=None):
    """Create the user, routine and workout session tables"""
    # Import models explicitly so every table is registered on Base.metadata
    from app.models import user, routine, workout_session  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating tables: {e}")
        raise
