"""Expose ORM models at package level.

Importing the package registers every table on ``Base.metadata``, which
``dependencies.db.init_models`` relies on. The `F401` noqa suppresses
unused-import warnings for the explicit re-exports.
"""

from .base import Base  # noqa: F401
from .bot_state import BotState  # noqa: F401
from .knowledge_items import KnowledgeItem  # noqa: F401
from .knowledge_sources import KnowledgeSource  # noqa: F401
from .tool_audit import ToolAudit  # noqa: F401
