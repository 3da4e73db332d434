import io
from datetime import datetime, timezone

from openpyxl import load_workbook

from goldledger import exports
from tests.conftest import login


def new_sale_form(**overrides):
    data = {
        "customer_name": "Asha Rao",
        "customer_phone": "9876543210",
        "item_selection": "Gold Ring",
        "custom_item_name": "",
        "huid": "HU1234",
        "notes": "",
        "item_base_price": "100000",
        "gst_amount": "3000",
        "discount_amount": "5000",
    }
    data.update(overrides)
    return data


class TestAccounts:

    def test_sales_pages_require_sign_in(self, client):
        response = client.get("/sales/history")
        assert response.status_code == 302
        assert "/login" in response.headers["Location"]

    def test_register_then_sign_in(self, client):
        response = client.post("/register", data={
            "username": "newshop",
            "display_name": "New Shop",
            "password": "secret123",
            "confirm": "secret123",
        }, follow_redirects=True)
        assert b"Account created" in response.data

        response = login(client, "newshop", "secret123")
        assert b"Signed in." in response.data
        assert b"New Shop" in response.data

    def test_duplicate_username_is_rejected(self, client, user_id):
        response = client.post("/register", data={
            "username": "shop",
            "password": "secret123",
            "confirm": "secret123",
        })
        assert b"already taken" in response.data

    def test_wrong_password(self, client, user_id):
        response = login(client, "shop", "nope")
        assert b"Wrong username or password" in response.data


class TestNewSale:

    def test_form_renders_with_item_choices(self, auth_client):
        response = auth_client.get("/sales/new")
        assert response.status_code == 200
        assert b"Gold Bangles" in response.data
        assert b"Custom Item" in response.data

    def test_accepted_sale_is_saved_and_listed(self, app, auth_client, store, user_id):
        response = auth_client.post("/sales/new", data=new_sale_form(), follow_redirects=True)

        assert b"Sale saved for Asha Rao." in response.data
        assert "₹98,000" in response.get_data(as_text=True)

        with app.app_context():
            [sale] = store.snapshot(user_id)
        assert sale.item_name == "Gold Ring"
        assert str(sale.final_price) == "98000.00"

    def test_custom_item_name_is_resolved(self, app, auth_client, store, user_id):
        auth_client.post("/sales/new", data=new_sale_form(
            item_selection="Custom Item", custom_item_name="  Vintage Brooch "
        ))

        with app.app_context():
            [sale] = store.snapshot(user_id)
        assert sale.item_name == "Vintage Brooch"

    def test_missing_customer_name_is_rejected(self, app, auth_client, store, user_id):
        response = auth_client.post("/sales/new", data=new_sale_form(customer_name=""))

        assert b"Please fill in the Customer Name." in response.data
        with app.app_context():
            assert store.snapshot(user_id) == ()

    def test_zero_base_price_is_rejected(self, app, auth_client, store, user_id):
        response = auth_client.post("/sales/new", data=new_sale_form(item_base_price="0"))

        assert b"Please fill in the Item Base Price." in response.data
        with app.app_context():
            assert store.snapshot(user_id) == ()

    def test_amount_above_limit_is_rejected(self, app, auth_client, store, user_id):
        response = auth_client.post("/sales/new", data=new_sale_form(item_base_price="12345678901"))

        assert "Item Base Price (₹) must not exceed ₹99,99,99,999.99." in response.get_data(as_text=True)
        with app.app_context():
            assert store.snapshot(user_id) == ()

    def test_discount_above_total_is_saved_negative(self, app, auth_client, store, user_id):
        auth_client.post("/sales/new", data=new_sale_form(
            item_base_price="1000", gst_amount="", discount_amount="1500"
        ))

        with app.app_context():
            [sale] = store.snapshot(user_id)
        assert str(sale.final_price) == "-500.00"

    def test_summary_endpoint(self, auth_client):
        response = auth_client.get(
            "/sales/summary?item_base_price=100000&gst_amount=3000&discount_amount=5000"
        )
        data = response.get_json()
        assert data["total_price_before_discount"] == "₹1,03,000"
        assert data["final_price"] == "₹98,000"
        assert data["negative"] is False


class TestHistory:

    def test_only_own_sales_are_listed(self, auth_client, add_sale, user_id, other_user_id):
        add_sale(user_id, customer="Meera Shah")
        add_sale(other_user_id, customer="Hidden Customer")

        response = auth_client.get("/sales/history")

        assert b"Meera Shah" in response.data
        assert b"Hidden Customer" not in response.data

    def test_newest_first(self, auth_client, add_sale, user_id):
        add_sale(user_id, when=datetime(2026, 3, 1), customer="Older Sale")
        add_sale(user_id, when=datetime(2026, 3, 9), customer="Newer Sale")

        body = auth_client.get("/sales/history").get_data(as_text=True)

        assert body.index("Newer Sale") < body.index("Older Sale")

    def test_search(self, auth_client, add_sale, user_id):
        add_sale(user_id, customer="Meera Shah")
        add_sale(user_id, customer="Kiran Patel")

        response = auth_client.get("/sales/history?q=kiran")

        assert b"Kiran Patel" in response.data
        assert b"Meera Shah" not in response.data

    def test_custom_period(self, auth_client, add_sale, user_id):
        add_sale(user_id, when=datetime(2026, 2, 10), customer="February Sale")
        add_sale(user_id, when=datetime(2026, 3, 10), customer="March Sale")

        response = auth_client.get(
            "/sales/history?period=custom&start_date=2026-03-01&end_date=2026-03-31"
        )

        assert b"March Sale" in response.data
        assert b"February Sale" not in response.data

    def test_today_follows_the_shop_time_zone(self, app, auth_client, add_sale, user_id):
        # fourteen hours ahead of UTC, so the local date often differs from the UTC one
        app.config["TIMEZONE"] = "Pacific/Kiritimati"
        add_sale(user_id, when=datetime.now(timezone.utc).replace(tzinfo=None), customer="Just Now")

        response = auth_client.get("/sales/history?period=today")

        assert b"Just Now" in response.data

    def test_legacy_sale_is_listed_with_total_price(self, app, auth_client, store, user_id):
        with app.app_context():
            store.import_documents(user_id, [{
                "customerName": "Ravi Kumar",
                "itemName": "Gold Chain",
                "weight": 10,
                "goldRate": 6000,
                "makingCharges": 2500,
                "totalPrice": 62500,
                "timestamp": "2024-11-02T10:00:00",
            }])

        body = auth_client.get("/sales/history").get_data(as_text=True)

        assert "Ravi Kumar" in body
        assert "₹62,500" in body


class TestSingleSale:

    def test_receipt_for_current_sale(self, auth_client, add_sale, user_id):
        sale_id = add_sale(user_id)

        body = auth_client.get(f"/sales/{sale_id}").get_data(as_text=True)

        assert sale_id[:8].upper() in body
        assert "₹1,03,000" in body
        assert "Receipt for Asha Rao" in body

    def test_receipt_for_legacy_sale(self, app, auth_client, store, user_id):
        with app.app_context():
            store.import_documents(user_id, [{
                "id": "legacy-0001",
                "customerName": "Ravi Kumar",
                "itemName": "Gold Chain",
                "weight": 10,
                "goldRate": 6000,
                "makingCharges": 2500,
                "totalPrice": 62500,
            }])

        body = auth_client.get("/sales/legacy-0001").get_data(as_text=True)

        assert "N/A (Not Recorded)" in body
        assert "₹60,000" in body
        assert "Making Charges" in body

    def test_other_owners_receipt_is_404(self, auth_client, add_sale, other_user_id):
        sale_id = add_sale(other_user_id)
        assert auth_client.get(f"/sales/{sale_id}").status_code == 404
        assert auth_client.get(f"/sales/{sale_id}/invoice.pdf").status_code == 404
        assert auth_client.get(f"/sales/{sale_id}/share").status_code == 404

    def test_delete(self, app, auth_client, store, add_sale, user_id):
        sale_id = add_sale(user_id)

        response = auth_client.post(f"/sales/{sale_id}/delete", follow_redirects=True)

        assert b"Sale deleted successfully." in response.data
        with app.app_context():
            assert store.snapshot(user_id) == ()

    def test_delete_other_owners_sale_fails(self, app, auth_client, store, add_sale, other_user_id):
        sale_id = add_sale(other_user_id)

        response = auth_client.post(f"/sales/{sale_id}/delete", follow_redirects=True)

        assert b"Failed to delete sale." in response.data
        with app.app_context():
            assert len(store.snapshot(other_user_id)) == 1

    def test_invoice_pdf(self, auth_client, add_sale, user_id, monkeypatch):
        rendered = {}

        def fake_from_string(html, output_path, options=None, configuration=None):
            rendered["html"] = html
            return b"%PDF-1.4 fake"

        monkeypatch.setattr(exports.pdfkit, "from_string", fake_from_string)
        sale_id = add_sale(user_id, when=datetime(2026, 3, 5, 11, 30))

        response = auth_client.get(f"/sales/{sale_id}/invoice.pdf")

        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data == b"%PDF-1.4 fake"
        assert "Invoice_Asha_Rao_1772710200000.pdf" in response.headers["Content-Disposition"]
        assert "+ 3000.00" in rendered["html"]
        assert "Thank you for your business!" in rendered["html"]

    def test_invoice_failure_is_reported(self, auth_client, add_sale, user_id, monkeypatch):
        def missing_binary(*args, **kwargs):
            raise OSError("No wkhtmltopdf executable found")

        monkeypatch.setattr(exports.pdfkit, "from_string", missing_binary)
        sale_id = add_sale(user_id)

        response = auth_client.get(f"/sales/{sale_id}/invoice.pdf", follow_redirects=True)

        assert b"Invoice generation failed" in response.data

    def test_share_redirects_to_whatsapp(self, auth_client, add_sale, user_id):
        sale_id = add_sale(user_id)

        response = auth_client.get(f"/sales/{sale_id}/share")

        assert response.status_code == 302
        assert response.headers["Location"].startswith("https://wa.me/919876543210?text=")

    def test_share_without_phone(self, auth_client, add_sale, user_id):
        sale_id = add_sale(user_id, customer_phone="")

        response = auth_client.get(f"/sales/{sale_id}/share", follow_redirects=True)

        assert b"No phone number recorded for this sale." in response.data


class TestExport:

    def test_csv(self, auth_client, add_sale, user_id):
        add_sale(user_id, when=datetime(2026, 3, 5, 11, 30), notes="paid, in cash")

        response = auth_client.get("/sales/export?format=csv&month=3&year=2026")

        assert response.status_code == 200
        assert "GoldLedger_Report_March_2026.csv" in response.headers["Content-Disposition"]
        text = response.data.decode("utf-8")
        assert text.startswith("﻿Date,Customer Name,Phone,Item Name,HUID,")
        lines = text.lstrip("﻿").splitlines()
        assert lines[1] == '05/03/2026,Asha Rao,9876543210,Gold Ring,HU1234,100000,3000,5000,98000,"paid, in cash"'

    def test_xlsx(self, app, auth_client, add_sale, store, user_id):
        add_sale(user_id, when=datetime(2026, 3, 5, 11, 30))
        with app.app_context():
            store.import_documents(user_id, [{
                "customerName": "Ravi Kumar",
                "itemName": "Gold Chain",
                "weight": 10,
                "goldRate": 6000,
                "totalPrice": 62500,
                "timestamp": "2026-03-02T10:00:00",
            }])

        response = auth_client.get("/sales/export?format=xlsx&month=3&year=2026")

        assert response.status_code == 200
        assert "GoldLedger_Report_March_2026.xlsx" in response.headers["Content-Disposition"]
        sheet = load_workbook(io.BytesIO(response.data))["Sales Report"]
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0][0] == "Date"
        assert rows[1][1] == "Asha Rao"
        assert rows[1][8] == 98000
        assert rows[2][1] == "Ravi Kumar"
        assert rows[2][5] == 60000
        assert rows[2][6] == "N/A"
        assert rows[2][8] == 62500

    def test_tsv(self, auth_client, add_sale, user_id):
        add_sale(user_id, when=datetime(2026, 3, 5), notes="line one\nline two")

        response = auth_client.get("/sales/export?format=tsv&month=3&year=2026")

        lines = response.get_data(as_text=True).splitlines()
        assert lines[0].split("\t")[0] == "Date"
        assert lines[1].split("\t")[-1] == "line one line two"

    def test_month_is_bucketed_in_the_shop_time_zone(self, app, auth_client, add_sale, user_id):
        app.config["TIMEZONE"] = "Asia/Kolkata"
        # 00:30 IST on 1 March
        add_sale(user_id, when=datetime(2026, 2, 28, 19, 0))

        march = auth_client.get("/sales/export?format=csv&month=3&year=2026")
        february = auth_client.get("/sales/export?format=csv&month=2&year=2026", follow_redirects=True)

        assert march.status_code == 200
        assert march.data.decode("utf-8").lstrip("\ufeff").splitlines()[1].startswith("01/03/2026,")
        assert b"No sales found for February, 2026." in february.data

    def test_empty_month_produces_no_file(self, auth_client, add_sale, user_id):
        add_sale(user_id, when=datetime(2026, 3, 5))

        response = auth_client.get("/sales/export?format=csv&month=4&year=2026", follow_redirects=True)

        assert b"No sales found for April, 2026." in response.data

    def test_bad_format(self, auth_client):
        assert auth_client.get("/sales/export?format=pdf").status_code == 400
