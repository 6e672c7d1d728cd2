from __future__ import annotations

import logging

from db.database import Base, engine
from db import models  # noqa: F401 - ensure metadata is registered

logger = logging.getLogger(__name__)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready at %s", engine.url.render_as_string(hide_password=True))
