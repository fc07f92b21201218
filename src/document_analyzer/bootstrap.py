from __future__ import annotations

import document_analyzer.models  # noqa: F401
from document_analyzer.core.db import engine
from document_analyzer.core.logging import get_logger, log_event
from document_analyzer.core.models import Base

logger = get_logger(__name__)


def bootstrap() -> None:
    Base.metadata.create_all(engine)
    log_event(logger, "bootstrap.schema_ready", tables=sorted(Base.metadata.tables))
