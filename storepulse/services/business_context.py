"""Static business context document, loaded once per process."""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError

from storepulse.config import settings
from storepulse.schemas import BusinessContext

log = logging.getLogger(__name__)


class BusinessContextError(Exception):
    pass


def load_business_context(path: str | Path) -> BusinessContext:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise BusinessContextError(f"Cannot read business context at {path}: {e}") from e
    try:
        context = BusinessContext.model_validate_json(raw)
    except ValidationError as e:
        raise BusinessContextError(f"Invalid business context in {path}:\n{e}") from e
    log.info("Loaded business context for %s", context.business_profile.store_name)
    return context


@lru_cache(maxsize=1)
def get_business_context() -> BusinessContext:
    return load_business_context(settings.BUSINESS_CONTEXT_PATH)
