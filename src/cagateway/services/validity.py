"""Turn a requested validity period into a certificate validity window."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from cagateway.core.errors import MUST_PROVIDE_VALIDITY_PERIOD, ClientInputError
from cagateway.models.requests import ValidityWindow

if TYPE_CHECKING:
    from collections.abc import Callable

_PERIOD_RE = re.compile(r"^\s*(\d+)\s*([smhdwy]?)\s*$", re.IGNORECASE)

_UNIT_SECONDS = {
    "": 1,
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
    "y": 365 * 24 * 60 * 60,
}

DEFAULT_BACKDATE_SECONDS = 6 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


class ValidityPeriodConverter:
    """Convert ``validityPeriod`` values.

    A bare integer is a number of seconds; a unit suffix (``s``, ``m``,
    ``h``, ``d``, ``w``, ``y``) scales it.  ``not_before`` is backdated
    by *backdate_seconds* to tolerate client clock skew.
    """

    def __init__(
        self,
        backdate_seconds: int = DEFAULT_BACKDATE_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backdate = timedelta(seconds=backdate_seconds)
        self._clock = clock

    def seconds(self, period: str | int | None) -> int:
        """Return the period in seconds.

        Raises
        ------
        ClientInputError
            If *period* is missing, unparseable or not positive.

        """
        if isinstance(period, bool) or period is None:
            raise ClientInputError(MUST_PROVIDE_VALIDITY_PERIOD)
        if isinstance(period, int):
            seconds = period
        else:
            m = _PERIOD_RE.match(str(period))
            if m is None:
                raise ClientInputError(MUST_PROVIDE_VALIDITY_PERIOD)
            seconds = int(m.group(1)) * _UNIT_SECONDS[m.group(2).lower()]
        if seconds <= 0:
            raise ClientInputError(MUST_PROVIDE_VALIDITY_PERIOD)
        return seconds

    def convert(self, period: str | int | None) -> ValidityWindow:
        seconds = self.seconds(period)
        now = self._clock()
        try:
            not_after = now + timedelta(seconds=seconds)
        except OverflowError:
            # past datetime.max
            raise ClientInputError(MUST_PROVIDE_VALIDITY_PERIOD) from None
        return ValidityWindow(not_before=now - self._backdate, not_after=not_after)
