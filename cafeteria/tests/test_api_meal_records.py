"""
Redemption endpoints as the scanning station calls them.
"""

from ..core.database import db_manager

PREFIX = "/api/v1"


class TestEmployeeLookupAPI:

    def test_by_card(self, client, seed, operator_headers):
        response = client.get(f"{PREFIX}/employees/by-card/04A1B2C3D4", headers=operator_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Abebe Bikila"
        assert data["shortCode"] == "1001"
        assert data["eligibleForSupport"] is True

    def test_by_code_not_found(self, client, seed, operator_headers):
        response = client.get(f"{PREFIX}/employees/by-code/4321", headers=operator_headers)

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "EMPLOYEE_NOT_FOUND"
        assert data["message"] == "Employee not found with this card or code."
        assert data["error"] == data["message"]

    def test_requires_login(self, client, seed):
        response = client.get(f"{PREFIX}/employees/by-card/04A1B2C3D4")
        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTHENTICATION_REQUIRED"

    def test_bad_token(self, client, seed):
        response = client.get(f"{PREFIX}/employees/by-card/04A1B2C3D4",
                              headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestRecordAPI:

    def test_record_default_item(self, client, seed, operator_headers, users):
        response = client.post(f"{PREFIX}/meal-records/record", headers=operator_headers,
                               json={"cardId": "04A1B2C3D4", "mealCategoryId": seed["c1"].id})

        assert response.status_code == 201
        data = response.json()
        assert data["priceType"] == "subsidized"
        assert data["actualPrice"] == 30.0
        assert data["supportAmount"] == 20.0
        assert data["actualPriceCents"] == 3000
        assert data["orderNumber"].startswith("20240312-")
        assert data["recordedByUsername"] == "operator1"
        assert data["items"][0]["mealItemId"] == seed["i0"].id

    def test_duplicate_is_409_with_operator_message(self, client, seed, operator_headers):
        body = {"cardId": "1002", "mealCategoryId": seed["c1"].id}
        assert client.post(f"{PREFIX}/meal-records/record", headers=operator_headers,
                           json=body).status_code == 201

        response = client.post(f"{PREFIX}/meal-records/record", headers=operator_headers, json=body)

        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "ALREADY_REDEEMED"
        assert data["message"] == "Tirunesh Dibaba has already used their lunch allowance today."

    def test_record_with_items(self, client, seed, operator_headers):
        response = client.post(f"{PREFIX}/meal-records/record-with-items", headers=operator_headers,
                               json={"cardId": "1001", "mealCategoryId": seed["c2"].id,
                                     "selectedItems": [{"mealItemId": seed["i2"].id, "quantity": 2}]})

        assert response.status_code == 201
        items = response.json()["items"]
        assert items == [{"mealItemId": seed["i2"].id, "itemName": "Misir",
                          "quantity": 2, "unitPriceCents": 4000}]

    def test_limit_exceeded(self, client, seed, operator_headers):
        response = client.post(f"{PREFIX}/meal-records/record-with-items", headers=operator_headers,
                               json={"cardId": "1001", "mealCategoryId": seed["c2"].id,
                                     "selectedItems": [{"mealItemId": seed["i2"].id, "quantity": 3}]})

        assert response.status_code == 409
        assert response.json()["error_code"] == "LIMIT_EXCEEDED"

    def test_insufficient_availability_names_item(self, client, seed, operator_headers):
        response = client.post(f"{PREFIX}/meal-records/record-with-items", headers=operator_headers,
                               json={"cardId": "1001", "mealCategoryId": seed["c2"].id,
                                     "selectedItems": [{"mealItemId": seed["i1"].id, "quantity": 2}]})

        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "INSUFFICIENT_AVAILABILITY"
        assert "Shiro" in data["message"]

    def test_empty_selection_is_rejected(self, client, seed, operator_headers):
        response = client.post(f"{PREFIX}/meal-records/record-with-items", headers=operator_headers,
                               json={"cardId": "1001", "mealCategoryId": seed["c2"].id,
                                     "selectedItems": []})
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_non_numeric_quantity_is_rejected(self, client, seed, operator_headers):
        response = client.post(f"{PREFIX}/meal-records/record-with-items", headers=operator_headers,
                               json={"cardId": "1001", "mealCategoryId": seed["c2"].id,
                                     "selectedItems": [{"mealItemId": seed["i2"].id, "quantity": "two"}]})
        assert response.status_code == 422
        assert db_manager.fetch_one("SELECT COUNT(*) AS n FROM meal_records")["n"] == 0

    def test_short_token_is_400(self, client, seed, operator_headers):
        response = client.post(f"{PREFIX}/meal-records/record", headers=operator_headers,
                               json={"cardId": "12", "mealCategoryId": seed["c1"].id})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_check_duplicate(self, client, seed, operator_headers):
        params = {"cardId": "1001", "mealTypeId": seed["lunch"].id}
        response = client.get(f"{PREFIX}/meal-records/check-duplicate", headers=operator_headers,
                              params=params)
        assert response.json() == {"hasUsedToday": False}

        client.post(f"{PREFIX}/meal-records/record", headers=operator_headers,
                    json={"cardId": "1001", "mealCategoryId": seed["c1"].id})

        response = client.get(f"{PREFIX}/meal-records/check-duplicate", headers=operator_headers,
                              params=params)
        assert response.json() == {"hasUsedToday": True}

    def test_attach_items(self, client, seed, operator_headers, manager_headers):
        record = client.post(f"{PREFIX}/meal-records/record", headers=operator_headers,
                             json={"cardId": "1001", "mealCategoryId": seed["c3"].id}).json()
        assert record["items"] == []

        item = client.post(f"{PREFIX}/meal-items", headers=manager_headers,
                           json={"mealCategoryId": seed["c3"].id, "name": "Chechebsa",
                                 "totalAvailable": 4}).json()

        response = client.post(f"{PREFIX}/meal-records/{record['id']}/items", headers=operator_headers,
                               json={"selectedItems": [{"mealItemId": item["id"], "quantity": 1}]})
        assert response.status_code == 200
        assert response.json()["items"][0]["itemName"] == "Chechebsa"

        again = client.post(f"{PREFIX}/meal-records/{record['id']}/items", headers=operator_headers,
                            json={"selectedItems": [{"mealItemId": item["id"], "quantity": 1}]})
        assert again.status_code == 422
        assert again.json()["error_code"] == "BUSINESS_RULE_VIOLATION"

    def test_quote(self, client, seed, operator_headers):
        response = client.get(f"{PREFIX}/meal-records/quote", headers=operator_headers,
                              params={"cardId": "1002", "mealCategoryId": seed["c1"].id})
        assert response.json()["applicablePriceCents"] == 5000


class TestRecordQueriesAPI:

    def _redeem(self, client, headers, seed):
        for token in ("1001", "1002"):
            client.post(f"{PREFIX}/meal-records/record", headers=headers,
                        json={"cardId": token, "mealCategoryId": seed["c1"].id})

    def test_list_and_filter(self, client, seed, operator_headers, manager_headers):
        self._redeem(client, operator_headers, seed)

        response = client.get(f"{PREFIX}/meal-records", headers=manager_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert len(data["items"]) == 2

        response = client.get(f"{PREFIX}/meal-records", headers=manager_headers,
                              params={"employeeId": seed["e2"].id})
        assert [r["employeeId"] for r in response.json()["items"]] == [seed["e2"].id]

        response = client.get(f"{PREFIX}/meal-records", headers=manager_headers,
                              params={"dateFrom": "2024-03-13"})
        assert response.json()["total"] == 0

    def test_list_needs_manager(self, client, seed, operator_headers):
        response = client.get(f"{PREFIX}/meal-records", headers=operator_headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"

    def test_get_and_receipt(self, client, seed, operator_headers):
        record = client.post(f"{PREFIX}/meal-records/record", headers=operator_headers,
                             json={"cardId": "1001", "mealCategoryId": seed["c1"].id}).json()

        response = client.get(f"{PREFIX}/meal-records/{record['id']}", headers=operator_headers)
        assert response.json()["orderNumber"] == record["orderNumber"]

        receipt = client.get(f"{PREFIX}/meal-records/{record['id']}/receipt", headers=operator_headers)
        assert receipt.status_code == 200
        text = receipt.json()["receiptText"]
        assert record["orderNumber"] in text
        assert "Actual Price: 30.00 ETB" in text
        assert "Tibs x1" in text

        simple = client.get(f"{PREFIX}/meal-records/{record['id']}/receipt", headers=operator_headers,
                            params={"format": "simple"})
        assert "Tibs" not in simple.json()["receiptText"]

        bad = client.get(f"{PREFIX}/meal-records/{record['id']}/receipt", headers=operator_headers,
                         params={"format": "fancy"})
        assert bad.status_code == 400

    def test_missing_record(self, client, seed, operator_headers):
        response = client.get(f"{PREFIX}/meal-records/4040", headers=operator_headers)
        assert response.status_code == 404
        assert response.json()["error_code"] == "MEAL_RECORD_NOT_FOUND"


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"
