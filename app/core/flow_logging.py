"""Category-gated INFO logs for high-volume business flows."""

import logging

from app.core.config import settings

# category -> Settings switch; unknown categories follow FLOW_LOGS_ENABLED only.
_CATEGORY_SWITCHES = {
    "allocation": "FLOW_LOGS_ALLOCATION_ENABLED",
    "ledger": "FLOW_LOGS_LEDGER_ENABLED",
}


def flow_logs_enabled(category: str | None = None) -> bool:
    if not settings.FLOW_LOGS_ENABLED:
        return False
    switch = _CATEGORY_SWITCHES.get((category or "").strip().lower())
    if switch is None:
        return True
    return bool(getattr(settings, switch, False))


def flow_info(
    logger: logging.Logger,
    msg: str,
    *args,
    category: str | None = None,
    **kwargs,
) -> None:
    if flow_logs_enabled(category) and logger.isEnabledFor(logging.INFO):
        logger.info(msg, *args, **kwargs)
