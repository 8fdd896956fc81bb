"""
HTTP client used by scanning stations.

Wraps a ``requests.Session`` around the redemption endpoints. Any failure
comes back as ``StationError`` whose ``message`` can be shown to the
operator as-is. Nothing is retried.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import requests

from ..config.settings import settings

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "The server took too long to respond. Please scan again."
CONNECTION_MESSAGE = "Cannot reach the server. Please check the connection."


class StationError(Exception):
    """A request from the station failed."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 error_code: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


def _selected_items(items: Iterable) -> List[Dict[str, int]]:
    selected = []
    for entry in items:
        if isinstance(entry, dict):
            selected.append({"mealItemId": entry.get("mealItemId", entry.get("meal_item_id")),
                             "quantity": entry.get("quantity", 1)})
        else:
            item_id, quantity = entry
            selected.append({"mealItemId": item_id, "quantity": quantity})
    return selected


class BackendClient:
    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.station_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.station_request_timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        token = token or settings.station_token
        if token:
            self.set_token(token)

    def set_token(self, token: str):
        self.session.headers["Authorization"] = f"Bearer {token}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.warning("%s %s timed out after %.1fs", method, url, self.timeout)
            raise StationError(TIMEOUT_MESSAGE)
        except requests.exceptions.ConnectionError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise StationError(CONNECTION_MESSAGE)

        if not response.ok:
            raise self._error_from(response)
        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from(response: requests.Response) -> StationError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or body.get("error") or body.get("detail")
        if not isinstance(message, str) or not message:
            message = f"Request failed with status {response.status_code}"
        return StationError(message, status_code=response.status_code,
                            error_code=body.get("error_code"))

    def login(self, username: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/login", json={"username": username, "password": password})
        self.set_token(data["accessToken"])
        return data

    def get_employee_by_card(self, card_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/employees/by-card/{quote(card_id, safe='')}")

    def get_employee_by_code(self, code: str) -> Dict[str, Any]:
        return self._request("GET", f"/employees/by-code/{quote(code, safe='')}")

    def find_employee(self, token: str) -> Dict[str, Any]:
        """Look a scanned or typed value up as a short code or card serial."""
        token = token.strip()
        if token.isdigit() and len(token) == 4:
            return self.get_employee_by_code(token)
        return self.get_employee_by_card(token)

    def get_meal_category(self, category_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/meal-categories/{category_id}")

    def check_duplicate(self, card_id: str, meal_type_id: int) -> bool:
        data = self._request("GET", "/meal-records/check-duplicate",
                             params={"cardId": card_id, "mealTypeId": meal_type_id})
        return bool(data["hasUsedToday"])

    def record_meal(self, card_id: str, meal_category_id: int) -> Dict[str, Any]:
        return self._request("POST", "/meal-records/record",
                             json={"cardId": card_id, "mealCategoryId": meal_category_id})

    def record_meal_with_items(self, card_id: str, meal_category_id: int,
                               items: Iterable) -> Dict[str, Any]:
        return self._request("POST", "/meal-records/record-with-items", json={
            "cardId": card_id,
            "mealCategoryId": meal_category_id,
            "selectedItems": _selected_items(items),
        })

    def attach_items(self, record_id: int, items: Iterable) -> Dict[str, Any]:
        return self._request("POST", f"/meal-records/{record_id}/items",
                             json={"selectedItems": _selected_items(items)})

    def get_receipt(self, record_id: int, fmt: str = "detailed") -> Dict[str, Any]:
        return self._request("GET", f"/meal-records/{record_id}/receipt", params={"format": fmt})
