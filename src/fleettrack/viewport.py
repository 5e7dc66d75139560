"""Automatic viewport fitting after reconciliation."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from fleettrack.reconciler import ReconcileResult
from fleettrack.surface import MapSurface

_logger = logging.getLogger(__name__)


class ViewportFitter:
    """Refit the map to the rendered markers when membership changes.

    Pure coordinate updates never refit. Refits are suppressed for
    ``cooldown`` seconds after the user last panned or zoomed, so a
    background refresh never yanks the map away from the user.
    """

    def __init__(
        self,
        surface: MapSurface,
        *,
        padding: float = 0.1,
        cooldown: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._surface = surface
        self._padding = padding
        self._cooldown = cooldown
        self._clock = clock
        self._last_user_change: float | None = None
        self.fits = 0

    def note_user_interaction(self) -> None:
        """Record a user-initiated pan or zoom."""
        self._last_user_change = self._clock()

    @property
    def user_active(self) -> bool:
        if self._last_user_change is None:
            return False
        return (self._clock() - self._last_user_change) < self._cooldown

    def refit(self, result: ReconcileResult) -> bool:
        """Fit the viewport to ``result.handles`` if warranted.

        Returns ``True`` when ``fit_bounds`` was called.
        """
        if not result.membership_changed:
            return False
        if not result.handles:
            return False
        if self.user_active:
            _logger.debug("Skipping refit: user moved the map within the last %ss", self._cooldown)
            return False
        try:
            self._surface.fit_bounds(list(result.handles), self._padding)
        except Exception:
            _logger.warning("Could not fit viewport to %d marker(s)", len(result.handles), exc_info=True)
            return False
        self.fits += 1
        return True
