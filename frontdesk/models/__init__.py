# Import models here so Alembic can discover them via metadata
from .base import Base  # noqa: F401
from .room import Room  # noqa: F401
from .user import User  # noqa: F401
from .queue_entry import QueueEntry  # noqa: F401
