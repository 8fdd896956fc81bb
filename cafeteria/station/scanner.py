"""
Scan loop for a single station.

Keystrokes from a card reader or keypad are buffered by ``feed``. Once the
buffer holds at least ``station_min_token_length`` characters and no new
input has arrived for ``station_debounce_seconds`` (or Enter was pressed),
the caller submits the buffer. A submission runs to a terminal state and
then the station goes back to idle with an empty buffer, whatever the
outcome.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..config.settings import settings
from ..models.record import RedemptionState
from .client import BackendClient, StationError

logger = logging.getLogger(__name__)

SUBMIT_KEYS = ("\r", "\n")


@dataclass
class ScanResult:
    success: bool
    message: str
    employee: Optional[Dict[str, Any]] = None
    record: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None
    trail: List[RedemptionState] = field(default_factory=list)


class ScanStation:
    """Client side of one redemption attempt per scan."""

    def __init__(self, client: BackendClient, meal_category_id: int,
                 min_length: Optional[int] = None, debounce_seconds: Optional[float] = None):
        self.client = client
        self.meal_category_id = meal_category_id
        self.min_length = min_length or settings.station_min_token_length
        self.debounce_seconds = (debounce_seconds if debounce_seconds is not None
                                 else settings.station_debounce_seconds)
        self.state = RedemptionState.IDLE
        self.buffer = ""
        self.last_input_at: Optional[float] = None
        self._submit_requested = False

    @property
    def processing(self) -> bool:
        return self.state != RedemptionState.IDLE and not self.state.is_terminal

    def feed(self, text: str, now: Optional[float] = None) -> bool:
        """
        Buffer input and report whether the buffer should be submitted now.

        Call with an empty string to poll the debounce timer.
        """
        now = time.monotonic() if now is None else now
        if self.processing:
            return False
        if text:
            if any(key in text for key in SUBMIT_KEYS):
                self._submit_requested = True
                for key in SUBMIT_KEYS:
                    text = text.replace(key, "")
            self.buffer += text
            self.last_input_at = now

        token = self.buffer.strip()
        if self._submit_requested and token:
            return True
        if len(token) < self.min_length or self.last_input_at is None:
            return False
        return now - self.last_input_at >= self.debounce_seconds

    def submit(self, token: Optional[str] = None,
               selection: Optional[Iterable] = None) -> Optional[ScanResult]:
        """
        Redeem the buffered (or given) token. Returns None when a
        submission is already in progress or there is nothing to submit.
        """
        if self.processing:
            logger.debug("Scan ignored while processing")
            return None
        token = (token if token is not None else self.buffer).strip()
        if not token:
            self._reset()
            return None

        trail = [RedemptionState.IDLE]
        employee = None
        try:
            self._enter(trail, RedemptionState.RESOLVING)
            employee = self.client.find_employee(token)

            self._enter(trail, RedemptionState.COMMITTING)
            if selection is None:
                record = self.client.record_meal(token, self.meal_category_id)
            else:
                record = self.client.record_meal_with_items(token, self.meal_category_id, selection)
        except StationError as e:
            trail.append(RedemptionState.FAILED)
            logger.info("Scan failed: %s", e.message)
            result = ScanResult(success=False, message=e.message, employee=employee,
                                error_code=e.error_code, trail=trail)
        else:
            trail.append(RedemptionState.SUCCESS)
            result = ScanResult(success=True, message=f"{record['mealName']} access granted!",
                                employee=employee, record=record, trail=trail)
        finally:
            self._reset()
        return result

    def _enter(self, trail: List[RedemptionState], state: RedemptionState):
        self.state = state
        trail.append(state)

    def _reset(self):
        self.state = RedemptionState.IDLE
        self.buffer = ""
        self.last_input_at = None
        self._submit_requested = False
