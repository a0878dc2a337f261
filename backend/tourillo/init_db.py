from tourillo.models_sqlalchemy import Base, engine
from tourillo.models_sqlalchemy.models import Account, User, UserSession  # noqa: F401
from tourillo.utils.logger import logger


def init_db():
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully!")


if __name__ == "__main__":
    init_db()
