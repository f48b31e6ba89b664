"""
测试订单与餐桌 API
"""


def _create_dinner(client, headers, guest, *dishes):
    return client.post("/restaurant-orders", headers=headers, json={
        "client_id": guest.id,
        "items": [{"product_id": d.id, "quantity": 1} for d in dishes],
    })


class TestRestaurantOrdersApi:
    def test_order_flow(self, client, staff_headers, sample_client, dish_x, dish_y, db_session):
        response = _create_dinner(client, staff_headers, sample_client, dish_x, dish_y)
        assert response.status_code == 201
        order = response.json()
        assert order["order_type"] == "RESTAURANT"
        assert order["total"] == "15.00"
        assert len(order["items"]) == 2

        order_id = order["id"]
        response = client.post(f"/restaurant-orders/{order_id}/items", headers=staff_headers, json={
            "items": [{"product_id": dish_x.id, "quantity": 1}]
        })
        assert response.json()["total"] == "25.00"
        assert len(response.json()["items"]) == 3

        response = client.post(f"/restaurant-orders/{order_id}/advance", headers=staff_headers,
                               json={"status": "PREPARING"})
        assert response.json()["status"] == "PREPARING"

        response = client.post(f"/restaurant-orders/{order_id}/payments", headers=staff_headers,
                               json={"amount": "25.00", "method": "CARD"})
        assert response.status_code == 201
        assert response.json()["amount"] == "25.00"

        order = client.get(f"/restaurant-orders/{order_id}", headers=staff_headers).json()
        assert order["status"] == "COMPLETED"
        assert order["payment_status"] == "PAID"
        assert order["balance"] == "0.00"
        assert len(order["payments"]) == 1

        db_session.refresh(dish_x)
        assert dish_x.stock == 8

    def test_overpayment_rejected(self, client, staff_headers, sample_client, dish_x):
        order_id = _create_dinner(client, staff_headers, sample_client, dish_x).json()["id"]
        response = client.post(f"/restaurant-orders/{order_id}/payments", headers=staff_headers,
                               json={"amount": "10.01"})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_input"

    def test_staff_cannot_delete(self, client, staff_headers, admin_headers, sample_client, dish_x):
        order_id = _create_dinner(client, staff_headers, sample_client, dish_x).json()["id"]
        response = client.delete(f"/restaurant-orders/{order_id}", headers=staff_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

        response = client.delete(f"/restaurant-orders/{order_id}", headers=admin_headers)
        assert response.status_code == 204

    def test_order_types_are_separate(self, client, staff_headers, sample_client, dish_x):
        order_id = _create_dinner(client, staff_headers, sample_client, dish_x).json()["id"]
        response = client.get(f"/supermarket-orders/{order_id}", headers=staff_headers)
        assert response.status_code == 404

    def test_wrong_category_rejected(self, client, staff_headers, sample_client, snack):
        response = _create_dinner(client, staff_headers, sample_client, snack)
        assert response.status_code == 400


class TestTablesApi:
    def test_assign_and_clear(self, client, staff_headers, manager_headers, sample_client, dish_x):
        table = client.post("/restaurant-tables", headers=manager_headers,
                            json={"table_number": "C3", "capacity": 2}).json()
        order_id = _create_dinner(client, staff_headers, sample_client, dish_x).json()["id"]

        response = client.post(f"/restaurant-tables/{table['id']}/assign", headers=staff_headers,
                               json={"order_id": order_id})
        assert response.status_code == 200
        assert response.json()["status"] == "OCCUPIED"

        response = client.post(f"/restaurant-tables/{table['id']}/clear", headers=staff_headers)
        assert response.status_code == 400

        client.post(f"/restaurant-orders/{order_id}/complete", headers=staff_headers)
        response = client.post(f"/restaurant-tables/{table['id']}/clear", headers=staff_headers)
        assert response.json()["status"] == "AVAILABLE"

    def test_staff_cannot_create_table(self, client, staff_headers):
        response = client.post("/restaurant-tables", headers=staff_headers, json={"table_number": "Z1"})
        assert response.status_code == 403
