from push_notifier.db.base import Base
from push_notifier.db.session import engine
from push_notifier.db import models  # noqa: F401  # Imported for side effects

if __name__ == "__main__":
    print("Creating tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created.")
