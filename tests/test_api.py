import io
from datetime import date

from openpyxl import load_workbook
from sqlalchemy import text

from bizdash.db.session import engine


def _sale_payload(dealer_id, **overrides):
    payload = {
        "date": "2024-01-05",
        "dealerId": dealer_id,
        "products": [
            {"productName": "Rice 25kg", "productPrice": 100, "quantity": 2},
            {"productName": "Sugar 10kg", "productPrice": 50, "quantity": 3},
        ],
        "surcharges": {"kata": 10, "transport": 20},
    }
    payload.update(overrides)
    return payload


def _order_payload(**overrides):
    payload = {
        "orderDate": "2024-03-15",
        "customerName": "Ravi Kumar",
        "phoneNo": "9845012345",
        "area": "Indiranagar, Bengaluru",
        "weight": "2kg",
        "courier": "DTDC",
        "trackingNumber": "D123",
        "orderSource": "WhatsApp",
        "products": [{"productName": "Saree", "productPrice": 1200, "quantity": 1}],
    }
    payload.update(overrides)
    return payload


class TestAuth:
    def test_health_is_public(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_backend_requires_token(self, client):
        assert client.get("/backend/dealers").status_code == 401

    def test_bad_token_rejected(self, client):
        resp = client.get("/backend/dealers", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_wrong_password(self, client, auth_headers):
        resp = client.post("/login", json={"username": "admin", "password": "wrong-pass"})
        assert resp.status_code == 401

    def test_duplicate_registration(self, client, auth_headers):
        resp = client.post(
            "/register",
            json={"username": "admin", "email": "other@example.com", "password": "secret123"},
        )
        assert resp.status_code == 400


class TestDealers:
    def test_create_and_read(self, client, auth_headers, dealer):
        assert dealer["dealerName"] == "Acme Traders"
        assert dealer["products"][0] == {"productName": "Rice 25kg", "productPrice": 100.0}

        resp = client.get(f"/backend/dealers/{dealer['id']}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json() == dealer

    def test_search_by_name(self, client, auth_headers, dealer):
        assert len(client.get("/backend/dealers", params={"search": "acme"}, headers=auth_headers).json()) == 1
        assert client.get("/backend/dealers", params={"search": "zzz"}, headers=auth_headers).json() == []

    def test_update_replaces_products(self, client, auth_headers, dealer):
        resp = client.put(
            f"/backend/dealers/{dealer['id']}/edit",
            json={"dealerName": "Acme Wholesale", "products": [{"productName": "Dal", "productPrice": 80}]},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["dealerName"] == "Acme Wholesale"
        assert [p["productName"] for p in body["products"]] == ["Dal"]

    def test_delete_blocked_while_referenced(self, client, auth_headers, dealer):
        client.post("/backend/sales", json=_sale_payload(dealer["id"]), headers=auth_headers)
        resp = client.delete(f"/backend/dealers/{dealer['id']}/delete", headers=auth_headers)
        assert resp.status_code == 409

    def test_delete(self, client, auth_headers, dealer):
        resp = client.delete(f"/backend/dealers/{dealer['id']}/delete", headers=auth_headers)
        assert resp.status_code == 200
        assert client.get(f"/backend/dealers/{dealer['id']}", headers=auth_headers).status_code == 404


class TestSales:
    def test_create_recomputes_totals(self, client, auth_headers, dealer):
        payload = _sale_payload(dealer["id"], totalAmount=1)
        resp = client.post("/backend/sales", json=payload, headers=auth_headers)
        assert resp.status_code == 201, resp.text
        sale = resp.json()
        assert sale["productTotal"] == 350.0
        assert sale["totalAmount"] == 380.0
        assert sale["dealerName"] == "Acme Traders"
        assert sale["dealer"]["id"] == dealer["id"]
        assert sale["surcharges"] == {"kata": 10.0, "transport": 20.0}
        assert [p["total"] for p in sale["products"]] == [200.0, 150.0]

    def test_zero_quantity_lines_not_stored(self, client, auth_headers, dealer):
        payload = _sale_payload(
            dealer["id"],
            products=[
                {"productName": "Rice 25kg", "productPrice": 100, "quantity": 1},
                {"productName": "Sugar 10kg", "productPrice": 50, "quantity": 0},
            ],
            surcharges={},
        )
        sale = client.post("/backend/sales", json=payload, headers=auth_headers).json()
        assert [p["productName"] for p in sale["products"]] == ["Rice 25kg"]
        assert sale["totalAmount"] == sale["productTotal"] == 100.0

    def test_empty_bill_rejected(self, client, auth_headers, dealer):
        payload = _sale_payload(dealer["id"], products=[{"productName": "Rice", "productPrice": 100, "quantity": 0}])
        assert client.post("/backend/sales", json=payload, headers=auth_headers).status_code == 400

    def test_unknown_dealer(self, client, auth_headers):
        resp = client.post("/backend/sales", json=_sale_payload("missing"), headers=auth_headers)
        assert resp.status_code == 404

    def test_quote_matches_saved_sale(self, client, auth_headers, dealer):
        quote = client.post(
            "/backend/sales/quote",
            json={
                "products": [
                    {"productName": "Rice 25kg", "productPrice": 100, "quantity": 2},
                    {"productName": "Sugar 10kg", "productPrice": "bad", "quantity": 3},
                ],
                "surcharges": {"kata": 10},
            },
            headers=auth_headers,
        ).json()
        assert quote["productTotal"] == 200.0
        assert quote["surchargeTotal"] == 10.0
        assert quote["totalAmount"] == 210.0
        assert len(quote["products"]) == 2

    def test_edit_replaces_whole_sale(self, client, auth_headers, dealer):
        sale = client.post("/backend/sales", json=_sale_payload(dealer["id"]), headers=auth_headers).json()
        resp = client.put(
            f"/backend/sales/{sale['id']}/edit",
            json=_sale_payload(
                dealer["id"],
                date="2024-01-06",
                products=[{"productName": "Rice 25kg", "productPrice": 100, "quantity": 5}],
                surcharges={"transport": 25},
            ),
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["date"] == "2024-01-06"
        assert body["totalAmount"] == 525.0
        assert body["surcharges"] == {"transport": 25.0}

    def test_list_search_and_date_range(self, client, auth_headers, dealer):
        client.post("/backend/sales", json=_sale_payload(dealer["id"]), headers=auth_headers)
        client.post("/backend/sales", json=_sale_payload(dealer["id"], date="2024-02-01"), headers=auth_headers)

        everything = client.get("/backend/sales", headers=auth_headers).json()
        assert [s["date"] for s in everything] == ["2024-02-01", "2024-01-05"]

        assert len(client.get("/backend/sales", params={"search": "ACME"}, headers=auth_headers).json()) == 2
        assert len(client.get("/backend/sales", params={"search": "380"}, headers=auth_headers).json()) == 2
        assert client.get("/backend/sales", params={"search": "zzz"}, headers=auth_headers).json() == []

        january = client.get(
            "/backend/sales",
            params={"startDate": "2024-01-01", "endDate": "2024-01-31"},
            headers=auth_headers,
        ).json()
        assert [s["date"] for s in january] == ["2024-01-05"]

    def test_bad_date_range(self, client, auth_headers):
        resp = client.get("/backend/sales", params={"startDate": "yesterday"}, headers=auth_headers)
        assert resp.status_code == 422

    def test_delete(self, client, auth_headers, dealer):
        sale = client.post("/backend/sales", json=_sale_payload(dealer["id"]), headers=auth_headers).json()
        assert client.delete(f"/backend/sales/{sale['id']}/delete", headers=auth_headers).status_code == 200
        assert client.get(f"/backend/sales/{sale['id']}", headers=auth_headers).status_code == 404

    def test_export_adds_grand_total(self, client, auth_headers, dealer):
        client.post("/backend/sales", json=_sale_payload(dealer["id"]), headers=auth_headers)
        resp = client.post("/backend/sales/export", json={"payload": []}, headers=auth_headers)
        assert resp.status_code == 200
        assert "Sales.xlsx" in resp.headers["content-disposition"]

        sheet = load_workbook(io.BytesIO(resp.content))["Sales"]
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0][0] == "Date"
        assert rows[-1][0] == "Grand Total"
        assert rows[-1][-1] == 380

    def test_unrounded_amounts_are_stored(self, client, auth_headers, dealer):
        payload = _sale_payload(
            dealer["id"],
            products=[{"productName": "Rice 25kg", "productPrice": "0.333", "quantity": 3}],
            surcharges={},
        )
        sale = client.post("/backend/sales", json=payload, headers=auth_headers).json()
        stored = client.get(f"/backend/sales/{sale['id']}", headers=auth_headers).json()
        assert stored["productTotal"] == 0.999
        assert stored["totalAmount"] == 0.999
        assert stored["products"][0]["total"] == 0.999

    def test_null_surcharges_mean_none(self, client, auth_headers, dealer):
        resp = client.post("/backend/sales", json=_sale_payload(dealer["id"], surcharges=None), headers=auth_headers)
        assert resp.status_code == 201, resp.text
        sale = resp.json()
        assert sale["surcharges"] == {}
        assert sale["totalAmount"] == sale["productTotal"] == 350.0

        quote = client.post(
            "/backend/sales/quote",
            json={"products": [{"productName": "Rice", "productPrice": 100, "quantity": 1}], "surcharges": None},
            headers=auth_headers,
        )
        assert quote.status_code == 200
        assert quote.json()["totalAmount"] == 100.0

    def test_out_of_range_numbers_count_as_zero(self, client, auth_headers, dealer):
        payload = _sale_payload(
            dealer["id"],
            products=[
                {"productName": "Rice 25kg", "productPrice": 100, "quantity": 10**20},
                {"productName": "Sugar 10kg", "productPrice": 50, "quantity": "1e999999"},
            ],
        )
        resp = client.post("/backend/sales", json=payload, headers=auth_headers)
        assert resp.status_code == 400
        assert "no products" in resp.json()["detail"]

        quote = client.post(
            "/backend/sales/quote",
            json={
                "products": [
                    {"productName": "Rice", "productPrice": "1e10000000", "quantity": 2},
                    {"productName": "Sugar", "productPrice": 50, "quantity": "1e10000000"},
                ],
                "surcharges": {"kata": "1e10000000", "transport": 5},
            },
            headers=auth_headers,
        )
        assert quote.status_code == 200
        body = quote.json()
        assert body["productTotal"] == 0.0
        assert body["totalAmount"] == 5.0

    def test_malformed_numbers_count_as_zero(self, client, auth_headers, dealer):
        payload = _sale_payload(
            dealer["id"],
            products=[
                {"productName": "Rice 25kg", "productPrice": "abc", "quantity": 2},
                {"productName": "Sugar 10kg", "productPrice": 50, "quantity": 2},
            ],
            surcharges={"kata": "NaN", "transport": -20},
        )
        sale = client.post("/backend/sales", json=payload, headers=auth_headers).json()
        assert [p["total"] for p in sale["products"]] == [0.0, 100.0]
        assert sale["surcharges"] == {}
        assert sale["totalAmount"] == 100.0

    def test_dates_with_trailing_text_rejected(self, client, auth_headers):
        resp = client.get("/backend/sales", params={"endDate": "2024-01-05garbage"}, headers=auth_headers)
        assert resp.status_code == 422
        assert "2024-01-05garbage" in resp.json()["detail"]

    def test_sale_with_missing_dealer_is_labelled(self, client, auth_headers, dealer):
        sale = client.post("/backend/sales", json=_sale_payload(dealer["id"]), headers=auth_headers).json()
        with engine.begin() as conn:
            conn.execute(text("UPDATE sales SET dealer_id = 'gone' WHERE id = :id"), {"id": sale["id"]})

        stored = client.get(f"/backend/sales/{sale['id']}", headers=auth_headers).json()
        assert stored["dealerName"] == "Unknown Dealer"
        assert stored["dealer"]["dealerName"] == "Unknown Dealer"


class TestOnlineOrders:
    def test_create_and_search_by_phone_and_area(self, client, auth_headers):
        resp = client.post(
            "/backend/online-order",
            json=_order_payload(surcharges={"transport": 60}),
            headers=auth_headers,
        )
        assert resp.status_code == 201, resp.text
        order = resp.json()
        assert order["totalAmount"] == 1260.0
        assert order["orderSource"] == "WhatsApp"

        for term in ("ravi", "98450", "indiranagar", "1260"):
            found = client.get("/backend/online-order", params={"search": term}, headers=auth_headers).json()
            assert [o["id"] for o in found] == [order["id"]], term

    def test_unknown_source_rejected(self, client, auth_headers):
        resp = client.post("/backend/online-order", json=_order_payload(orderSource="Fax"), headers=auth_headers)
        assert resp.status_code == 422

    def test_edit_and_delete(self, client, auth_headers):
        order = client.post("/backend/online-order", json=_order_payload(), headers=auth_headers).json()
        resp = client.put(
            f"/backend/online-order/{order['id']}/edit",
            json=_order_payload(products=[{"productName": "Saree", "productPrice": 1200, "quantity": 2}]),
            headers=auth_headers,
        )
        assert resp.json()["totalAmount"] == 2400.0
        assert client.delete(f"/backend/online-order/{order['id']}/delete", headers=auth_headers).status_code == 200
        assert client.get(f"/backend/online-order/{order['id']}", headers=auth_headers).status_code == 404

    def test_export_selected_rows(self, client, auth_headers):
        order = client.post("/backend/online-order", json=_order_payload(), headers=auth_headers).json()
        resp = client.post("/backend/online-order/export", json={"payload": [order]}, headers=auth_headers)
        sheet = load_workbook(io.BytesIO(resp.content))["Orders"]
        rows = list(sheet.iter_rows(values_only=True))
        assert len(rows) == 2
        assert rows[1][1] == "Ravi Kumar"

    def test_date_range_filter(self, client, auth_headers):
        for day in ("2024-03-01", "2024-03-15", "2024-04-02"):
            client.post("/backend/online-order", json=_order_payload(orderDate=day), headers=auth_headers)

        march = client.get(
            "/backend/online-order",
            params={"startDate": "2024-03-31", "endDate": "2024-03-01"},
            headers=auth_headers,
        ).json()
        assert sorted(o["orderDate"] for o in march) == ["2024-03-01", "2024-03-15"]

        later = client.get("/backend/online-order", params={"startDate": "2024-03-15"}, headers=auth_headers).json()
        assert sorted(o["orderDate"] for o in later) == ["2024-03-15", "2024-04-02"]

    def test_null_surcharges_mean_none(self, client, auth_headers):
        resp = client.post("/backend/online-order", json=_order_payload(surcharges=None), headers=auth_headers)
        assert resp.status_code == 201, resp.text
        assert resp.json()["totalAmount"] == resp.json()["productTotal"] == 1200.0

    def test_missing_order_is_404(self, client, auth_headers):
        assert client.get("/backend/online-order/nope", headers=auth_headers).status_code == 404
        resp = client.put("/backend/online-order/nope/edit", json=_order_payload(), headers=auth_headers)
        assert resp.status_code == 404
        assert client.delete("/backend/online-order/nope/delete", headers=auth_headers).status_code == 404


class TestPayments:
    def test_crud_and_search(self, client, auth_headers, dealer):
        resp = client.post(
            "/backend/payments",
            json={"orderDate": "2024-04-01", "dealerId": dealer["id"], "totalAmount": 1500, "paymentMode": "upi"},
            headers=auth_headers,
        )
        assert resp.status_code == 201, resp.text
        payment = resp.json()
        assert payment["dealerName"] == "Acme Traders"
        assert payment["totalAmount"] == 1500.0

        found = client.get("/backend/payments", params={"search": "acme"}, headers=auth_headers).json()
        assert [p["id"] for p in found] == [payment["id"]]

        resp = client.put(
            f"/backend/payments/{payment['id']}/edit",
            json={"orderDate": "2024-04-02", "dealerId": dealer["id"], "totalAmount": 900, "paymentMode": "cash"},
            headers=auth_headers,
        )
        assert resp.json()["paymentMode"] == "cash"
        assert client.delete(f"/backend/payments/{payment['id']}/delete", headers=auth_headers).status_code == 200

    def test_non_positive_amount_rejected(self, client, auth_headers, dealer):
        resp = client.post(
            "/backend/payments",
            json={"orderDate": "2024-04-01", "dealerId": dealer["id"], "totalAmount": 0, "paymentMode": "cash"},
            headers=auth_headers,
        )
        assert resp.status_code == 422

    def test_export_grand_total_row(self, client, auth_headers, dealer):
        for amount in (100, 250):
            client.post(
                "/backend/payments",
                json={"orderDate": "2024-04-01", "dealerId": dealer["id"], "totalAmount": amount, "paymentMode": "bank"},
                headers=auth_headers,
            )
        resp = client.post("/backend/payments/export", json={}, headers=auth_headers)
        rows = list(load_workbook(io.BytesIO(resp.content))["Payments"].iter_rows(values_only=True))
        assert rows[-1][1] == "Grand Total"
        assert rows[-1][3] == 350

    def test_missing_payment_is_404(self, client, auth_headers, dealer):
        body = {"orderDate": "2024-04-01", "dealerId": dealer["id"], "totalAmount": 10, "paymentMode": "cash"}
        assert client.get("/backend/payments/nope", headers=auth_headers).status_code == 404
        assert client.put("/backend/payments/nope/edit", json=body, headers=auth_headers).status_code == 404
        assert client.delete("/backend/payments/nope/delete", headers=auth_headers).status_code == 404

    def test_payment_with_missing_dealer_is_labelled(self, client, auth_headers, dealer):
        payment = client.post(
            "/backend/payments",
            json={"orderDate": "2024-04-01", "dealerId": dealer["id"], "totalAmount": 10, "paymentMode": "cash"},
            headers=auth_headers,
        ).json()
        with engine.begin() as conn:
            conn.execute(text("UPDATE payments SET dealer_id = 'gone' WHERE id = :id"), {"id": payment["id"]})

        stored = client.get(f"/backend/payments/{payment['id']}", headers=auth_headers).json()
        assert stored["dealerName"] == "Unknown Dealer"


class TestExpenses:
    def test_list_returns_grand_total_of_filtered_rows(self, client, auth_headers):
        for day, desc, amount in (("2024-05-01", "Shop rent", 5000), ("2024-05-03", "Tea", 120), ("2024-06-01", "Rent", 5000)):
            resp = client.post(
                "/backend/expenses",
                json={"date": day, "desc": desc, "amount": amount},
                headers=auth_headers,
            )
            assert resp.status_code == 201, resp.text

        may = client.get(
            "/backend/expenses",
            params={"startDate": "2024-05-01", "endDate": "2024-05-31"},
            headers=auth_headers,
        ).json()
        assert len(may["data"]) == 2
        assert may["grandTotal"] == 5120.0

        rent = client.get("/backend/expenses", params={"search": "rent"}, headers=auth_headers).json()
        assert rent["grandTotal"] == 10000.0

    def test_edit_and_delete(self, client, auth_headers):
        expense = client.post(
            "/backend/expenses",
            json={"date": "2024-05-01", "desc": "Tea", "amount": 120},
            headers=auth_headers,
        ).json()
        resp = client.put(
            f"/backend/expenses/{expense['id']}/edit",
            json={"date": "2024-05-02", "desc": "Tea and snacks", "amount": "180.50"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["desc"] == "Tea and snacks"
        assert resp.json()["amount"] == 180.5
        assert resp.json()["date"] == "2024-05-02"

        assert client.delete(f"/backend/expenses/{expense['id']}/delete", headers=auth_headers).status_code == 200
        assert client.get(f"/backend/expenses/{expense['id']}", headers=auth_headers).status_code == 404
        assert client.get("/backend/expenses", headers=auth_headers).json() == {"data": [], "grandTotal": 0.0}

    def test_missing_expense_is_404(self, client, auth_headers):
        body = {"date": "2024-05-01", "desc": "Tea", "amount": 120}
        assert client.get("/backend/expenses/nope", headers=auth_headers).status_code == 404
        assert client.put("/backend/expenses/nope/edit", json=body, headers=auth_headers).status_code == 404
        assert client.delete("/backend/expenses/nope/delete", headers=auth_headers).status_code == 404

    def test_export_grand_total_in_description_column(self, client, auth_headers):
        for desc, amount in (("Rent", 5000), ("Tea", "120.5")):
            client.post(
                "/backend/expenses",
                json={"date": "2024-05-01", "desc": desc, "amount": amount},
                headers=auth_headers,
            )
        resp = client.post("/backend/expenses/export", json={"payload": []}, headers=auth_headers)
        assert "Expenses.xlsx" in resp.headers["content-disposition"]
        rows = list(load_workbook(io.BytesIO(resp.content))["Expenses"].iter_rows(values_only=True))
        assert rows[0] == ("Date", "Description", "Amount")
        assert len(rows) == 4
        assert rows[-1][1] == "Grand Total"
        assert rows[-1][2] == 5120.5


class TestDashboard:
    def test_monthly_orders_and_dealer_sales(self, client, auth_headers, dealer):
        client.post("/backend/online-order", json=_order_payload(orderDate="2024-03-02"), headers=auth_headers)
        client.post("/backend/online-order", json=_order_payload(orderDate="2024-01-20"), headers=auth_headers)
        client.post("/backend/sales", json=_sale_payload(dealer["id"]), headers=auth_headers)

        trend = client.get("/dashboard/monthly-orders", headers=auth_headers).json()
        assert trend == [{"month": "Jan 2024", "sales": 1200.0}, {"month": "Mar 2024", "sales": 1200.0}]

        shares = client.get(
            "/dashboard/dealer-sales",
            params={"month": "01", "year": "2024"},
            headers=auth_headers,
        ).json()
        assert shares == [{"dealer": "Acme Traders", "sales": 380.0, "percentage": 100.0}]

    def test_dealer_sales_defaults_to_current_month(self, client, auth_headers, dealer):
        today = date.today().isoformat()
        client.post("/backend/sales", json=_sale_payload(dealer["id"], date=today), headers=auth_headers)
        client.post("/backend/sales", json=_sale_payload(dealer["id"], date="2001-01-01"), headers=auth_headers)

        shares = client.get("/dashboard/dealer-sales", headers=auth_headers).json()
        assert shares == [{"dealer": "Acme Traders", "sales": 380.0, "percentage": 100.0}]
