# SQLModel definitions — imported here to ensure metadata is populated for create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .workspace import Workspace, WorkspaceMember  # noqa: F401
from .task import Task  # noqa: F401
from .goal import Goal  # noqa: F401
from .activity import Activity  # noqa: F401
