from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from meeting_reminders.core.config import DATABASE_URL
from meeting_reminders.models.user import Base  # Only import Base from user.py

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# SQLAlchemy engine
engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,  # avoids stale connections
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependency for FastAPI routes
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Function to create tables
def init_db():
    # Register every model on Base.metadata
    from meeting_reminders.models import course, meeting, subscription, task  # noqa: F401

    Base.metadata.create_all(bind=engine)
