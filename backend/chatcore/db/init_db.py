"""Create all tables. Run on app startup."""
from chatcore.db.base import Base
from chatcore.db.session import engine
from chatcore.models import user, chatbot, conversation  # noqa: F401 - register models


def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
