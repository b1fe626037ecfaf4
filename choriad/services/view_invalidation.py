"""Stale-view invalidation after a committed state transition.

The dashboards that render bookings are cached by the front end; after a
transition the affected routes are announced here. Delivery is best effort:
a failing invalidator is logged and never changes the webhook response.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List

from choriad import config
from choriad.utils import get_logger

logger = get_logger(__name__)


class ViewInvalidator(ABC):
    @abstractmethod
    def invalidate(self, paths: Iterable[str]) -> None:
        """Mark the given dashboard routes stale."""


class LoggingViewInvalidator(ViewInvalidator):
    """Default invalidator: records the routes for the front end's revalidation hook."""

    def invalidate(self, paths: Iterable[str]) -> None:
        for path in paths:
            logger.info("View invalidated", path=path)


def paths_for(transition: str, **identifiers: str) -> List[str]:
    templates = config.INVALIDATION_PATHS.get(transition, [])
    return [template.format(**identifiers) for template in templates]


def invalidate_after_commit(invalidator: ViewInvalidator, transition: str, **identifiers: str) -> List[str]:
    paths = paths_for(transition, **identifiers)
    try:
        invalidator.invalidate(paths)
    except Exception as e:
        logger.warning(
            "View invalidation failed; dashboards may show stale data",
            transition=transition,
            error=str(e),
            paths=paths,
        )
    return paths


__all__ = ["ViewInvalidator", "LoggingViewInvalidator", "paths_for", "invalidate_after_commit"]
