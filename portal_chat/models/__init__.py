# Усі моделі імпортуються тут, щоб alembic бачив повну metadata

from portal_chat.dependencies.database import Base
from .profile import AdminRole, Profile
from .chat import ChatMessage, ChatSession, ChatStatus
