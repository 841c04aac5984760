from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from salon360.config import settings

engine = create_engine(
    settings.database_url_normalized,
    pool_pre_ping=True,
    pool_recycle=300,
    connect_args={'application_name': settings.application_name},
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
