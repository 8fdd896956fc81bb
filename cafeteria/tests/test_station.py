"""
Station side: error messages shown to operators, lookup routing and the
scan loop state machine.
"""

import json
from unittest import mock

import pytest
import requests

from ..models.record import RedemptionState
from ..station.client import CONNECTION_MESSAGE, TIMEOUT_MESSAGE, BackendClient, StationError
from ..station.scanner import ScanStation

BASE_URL = "http://station.test/api/v1"


def make_response(status_code, body=None, url=BASE_URL):
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response._content = b"" if body is None else json.dumps(body).encode()
    return response


@pytest.fixture
def session():
    s = requests.Session()
    s.request = mock.Mock()
    return s


@pytest.fixture
def backend(session):
    return BackendClient(base_url=BASE_URL, token="t0ken", timeout=2.0, session=session)


class TestBackendClient:

    def test_sends_token_and_timeout(self, backend, session):
        session.request.return_value = make_response(200, {"id": 1, "name": "Abebe Bikila"})

        employee = backend.get_employee_by_card("04A1B2C3D4")

        assert employee["name"] == "Abebe Bikila"
        session.request.assert_called_once_with(
            "GET", f"{BASE_URL}/employees/by-card/04A1B2C3D4", timeout=2.0)
        assert session.headers["Authorization"] == "Bearer t0ken"

    @pytest.mark.parametrize("token, path", [
        ("1001", "/employees/by-code/1001"),
        (" 1001 ", "/employees/by-code/1001"),
        ("04A1B2C3D4", "/employees/by-card/04A1B2C3D4"),
        ("10012", "/employees/by-card/10012"),
        ("A/B 1", "/employees/by-card/A%2FB%201"),
    ])
    def test_find_employee_routing(self, backend, session, token, path):
        session.request.return_value = make_response(200, {"id": 1})
        backend.find_employee(token)
        assert session.request.call_args.args[1] == BASE_URL + path

    def test_server_message_is_passed_through_verbatim(self, backend, session):
        message = "Tirunesh Dibaba has already used their lunch allowance today."
        session.request.return_value = make_response(409, {
            "success": False, "error_code": "ALREADY_REDEEMED", "message": message, "error": message,
        })

        with pytest.raises(StationError) as exc_info:
            backend.record_meal("1002", 1)

        assert exc_info.value.message == message
        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == "ALREADY_REDEEMED"

    def test_error_field_fallbacks(self, backend, session):
        session.request.return_value = make_response(422, {"detail": "Not allowed"})
        with pytest.raises(StationError) as exc_info:
            backend.record_meal("1001", 1)
        assert exc_info.value.message == "Not allowed"

        session.request.return_value = make_response(502)
        with pytest.raises(StationError) as exc_info:
            backend.record_meal("1001", 1)
        assert exc_info.value.message == "Request failed with status 502"

    def test_timeout(self, backend, session):
        session.request.side_effect = requests.exceptions.Timeout()
        with pytest.raises(StationError) as exc_info:
            backend.record_meal("1001", 1)
        assert exc_info.value.message == TIMEOUT_MESSAGE
        assert exc_info.value.status_code is None

    def test_connection_error(self, backend, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(StationError) as exc_info:
            backend.get_meal_category(3)
        assert exc_info.value.message == CONNECTION_MESSAGE

    def test_record_with_items_payload(self, backend, session):
        session.request.return_value = make_response(201, {"id": 9})

        backend.record_meal_with_items("1001", 2, [(5, 2), {"meal_item_id": 6}])

        assert session.request.call_args.kwargs["json"] == {
            "cardId": "1001",
            "mealCategoryId": 2,
            "selectedItems": [{"mealItemId": 5, "quantity": 2}, {"mealItemId": 6, "quantity": 1}],
        }

    def test_login_sets_token(self, session):
        client = BackendClient(base_url=BASE_URL, token="", session=session)
        session.request.return_value = make_response(200, {"accessToken": "fresh", "tokenType": "bearer"})

        client.login("operator1", "secret123")

        assert session.headers["Authorization"] == "Bearer fresh"

    def test_check_duplicate(self, backend, session):
        session.request.return_value = make_response(200, {"hasUsedToday": True})
        assert backend.check_duplicate("1001", 2) is True
        assert session.request.call_args.kwargs["params"] == {"cardId": "1001", "mealTypeId": 2}


class FakeBackend:
    """Stands in for BackendClient; records calls and replays canned outcomes."""

    def __init__(self, employee=None, record=None, error=None):
        self.employee = employee or {"id": 1, "name": "Abebe Bikila"}
        self.record = record or {"id": 7, "mealName": "Lunch Plate"}
        self.error = error
        self.calls = []
        self.during_commit = None

    def find_employee(self, token):
        self.calls.append(("find", token))
        if self.error and self.error.status_code == 404:
            raise self.error
        return self.employee

    def _commit(self, call):
        self.calls.append(call)
        if self.during_commit:
            self.during_commit()
        if self.error:
            raise self.error
        return self.record

    def record_meal(self, token, category_id):
        return self._commit(("record", token, category_id))

    def record_meal_with_items(self, token, category_id, selection):
        return self._commit(("record_items", token, category_id, list(selection)))


class TestScanStation:

    def test_debounce(self):
        station = ScanStation(FakeBackend(), meal_category_id=1, min_length=4, debounce_seconds=0.5)

        assert station.feed("10", now=0.0) is False
        assert station.feed("01", now=0.1) is False
        assert station.feed("", now=0.4) is False
        assert station.feed("", now=0.6) is True

    def test_short_buffer_never_submits_on_timer(self):
        station = ScanStation(FakeBackend(), meal_category_id=1, min_length=4, debounce_seconds=0.5)
        station.feed("10", now=0.0)
        assert station.feed("", now=10.0) is False

    def test_enter_submits_immediately(self):
        station = ScanStation(FakeBackend(), meal_category_id=1, min_length=4, debounce_seconds=0.5)

        assert station.feed("04A1\r\n", now=0.0) is True
        assert station.buffer == "04A1"

    def test_enter_on_empty_buffer(self):
        station = ScanStation(FakeBackend(), meal_category_id=1, min_length=4, debounce_seconds=0.5)
        assert station.feed("\n", now=0.0) is False

    def test_successful_scan(self):
        backend = FakeBackend()
        station = ScanStation(backend, meal_category_id=3, min_length=4, debounce_seconds=0.5)
        station.feed("1001", now=0.0)

        result = station.submit()

        assert result.success is True
        assert result.message == "Lunch Plate access granted!"
        assert result.record["id"] == 7
        assert result.trail == [RedemptionState.IDLE, RedemptionState.RESOLVING,
                                RedemptionState.COMMITTING, RedemptionState.SUCCESS]
        assert backend.calls == [("find", "1001"), ("record", "1001", 3)]
        assert station.state == RedemptionState.IDLE
        assert station.buffer == ""

    def test_selection_uses_items_endpoint(self):
        backend = FakeBackend()
        station = ScanStation(backend, meal_category_id=3)

        station.submit("1001", selection=[(5, 1)])

        assert backend.calls[-1] == ("record_items", "1001", 3, [(5, 1)])

    def test_unknown_employee(self):
        error = StationError("Employee not found with this card or code.", 404, "EMPLOYEE_NOT_FOUND")
        backend = FakeBackend(error=error)
        station = ScanStation(backend, meal_category_id=3)

        result = station.submit("4321")

        assert result.success is False
        assert result.message == "Employee not found with this card or code."
        assert result.error_code == "EMPLOYEE_NOT_FOUND"
        assert result.trail == [RedemptionState.IDLE, RedemptionState.RESOLVING, RedemptionState.FAILED]
        assert backend.calls == [("find", "4321")]

    def test_commit_failure_resets_to_idle(self):
        error = StationError("Abebe Bikila has already used their lunch allowance today.",
                             409, "ALREADY_REDEEMED")
        station = ScanStation(FakeBackend(error=error), meal_category_id=3)
        station.feed("1001", now=0.0)

        result = station.submit()

        assert result.success is False
        assert result.error_code == "ALREADY_REDEEMED"
        assert result.trail[-1] == RedemptionState.FAILED
        assert station.state == RedemptionState.IDLE
        assert station.buffer == ""

    def test_scans_ignored_while_processing(self):
        backend = FakeBackend()
        station = ScanStation(backend, meal_category_id=3, min_length=4, debounce_seconds=0.0)
        nested = []

        def rescan():
            nested.append(station.feed("1002\n", now=1.0))
            nested.append(station.submit("1002"))

        backend.during_commit = rescan

        result = station.submit("1001")

        assert result.success is True
        assert nested == [False, None]
        assert [c for c in backend.calls if c[0] == "record"] == [("record", "1001", 3)]

    def test_empty_submit(self):
        backend = FakeBackend()
        station = ScanStation(backend, meal_category_id=3)
        assert station.submit("   ") is None
        assert backend.calls == []
