from backend.services.database.database import Base, engine
from backend.services.database import models  # noqa: F401  (registers the tables)


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)


if __name__ == "__main__":  # pragma: no cover
    init_db()
