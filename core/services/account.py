"""Eager remote account check shared by publish and reconciliation."""

from __future__ import annotations

from loguru import logger

from core.errors import NetworkUnavailable, NotSignedIn
from core.services.interfaces import AccountStatus, RemoteDatabase


def require_available_account(database: RemoteDatabase) -> None:
    """Raise unless `database` reports an available account.

    Connection failures while asking become `NetworkUnavailable`; any status
    other than AVAILABLE becomes `NotSignedIn`.
    """
    try:
        status = database.account_status()
    except (ConnectionError, TimeoutError) as ex:
        logger.warning("Account status check failed: {}", ex)
        raise NetworkUnavailable(ex) from ex
    if status is not AccountStatus.AVAILABLE:
        logger.warning("Remote account unavailable: {}", status.value)
        raise NotSignedIn(status)
