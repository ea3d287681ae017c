import json
from decimal import Decimal
from urllib.parse import quote

import pytest


def place_order(client, customer, product, quantity):
    return client.post(
        "/orders/",
        json={
            "customer_id": customer["RowKey"],
            "product_id": product["RowKey"],
            "quantity": quantity,
            "order_date": "2026-10-19",
        },
    )


class TestHome:
    def test_dashboard_counts(self, client, customer, widget):
        for index in range(6):
            client.post(
                "/products/",
                data={"name": f"Item {index}", "price": "1.00", "stock_available": "1"},
            )
        place_order(client, customer, widget, 1)

        response = client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["product_count"] == 7
        assert body["customer_count"] == 1
        assert body["order_count"] == 1
        assert len(body["featured_products"]) == 5

    def test_health_passes_once_initialized(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "pass"

    def test_initialize_storage(self, client):
        response = client.post("/initialize-storage")

        assert response.status_code == 200
        assert response.json()["message"] == "Azure Storage initialized successfully"

    def test_next_queue_message(self, client, customer, widget):
        place_order(client, customer, widget, 2)

        response = client.get("/queues/stock-updates/next")

        assert response.status_code == 200
        assert json.loads(response.json()["message"])["new_stock"] == 8
        assert client.get("/queues/stock-updates/next").json()["message"] is None

    def test_unknown_queue(self, client):
        assert client.get("/queues/secrets/next").status_code == 404


class TestProducts:
    def test_create_and_fetch(self, client, widget):
        assert widget["price"] == "9.99"
        assert widget["PartitionKey"] == "Product"
        assert widget["etag"]

        response = client.get(f"/products/{widget['RowKey']}")

        assert response.status_code == 200
        assert response.json()["name"] == "Widget"
        assert response.json()["stock_available"] == 10

    def test_list(self, client, widget):
        response = client.get("/products/")

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["items"]] == ["Widget"]

    def test_create_with_image(self, client, storage):
        response = client.post(
            "/products/",
            data={"name": "Lamp", "price": "15", "stock_available": "2"},
            files={"image": ("lamp.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 201
        image_url = response.json()["image_url"]
        assert "/product-images/" in image_url and image_url.endswith(".png")
        assert response.json()["price"] == "15.00"

    def test_image_upload_failure(self, client, storage):
        storage.blob_service.fail_uploads = True

        response = client.post(
            "/products/",
            data={"name": "Lamp", "price": "15", "stock_available": "2"},
            files={"image": ("lamp.png", b"\x89PNG", "image/png")},
        )

        assert response.status_code == 502
        assert client.get("/products/").json()["items"] == []

    def test_replacing_image_deletes_old_blob(self, client, storage):
        created = client.post(
            "/products/",
            data={"name": "Lamp", "price": "15", "stock_available": "2"},
            files={"image": ("lamp.png", b"old", "image/png")},
        ).json()

        response = client.put(
            f"/products/{created['RowKey']}",
            data={"name": "Lamp", "price": "15", "stock_available": "2"},
            files={"image": ("lamp2.png", b"new", "image/png")},
        )

        assert response.status_code == 200
        assert response.json()["image_url"] != created["image_url"]
        blobs = storage.blob_service.containers["product-images"]["blobs"]
        assert list(blobs.values()) == [b"new"]

        client.delete(f"/products/{created['RowKey']}")
        assert blobs == {}

    def test_invalid_price_is_rejected(self, client):
        for price in ("abc", "0", "-3.50", "NaN", "1e30", "0.004"):
            response = client.post(
                "/products/",
                data={"name": "Bad", "price": price, "stock_available": "1"},
            )
            assert response.status_code == 400
            assert response.json()["detail"] == "Price must be greater than $0.00."

    def test_failed_edit_discards_new_image(self, client, storage):
        created = client.post(
            "/products/",
            data={"name": "Lamp", "price": "15", "stock_available": "2"},
            files={"image": ("lamp.png", b"old", "image/png")},
        ).json()
        client.put(
            f"/products/{created['RowKey']}",
            data={"name": "Lamp", "price": "15", "stock_available": "1"},
        )

        response = client.put(
            f"/products/{created['RowKey']}",
            data={"name": "Lamp", "price": "15", "stock_available": "2"},
            files={"image": ("lamp2.png", b"new", "image/png")},
            headers={"If-Match": created["etag"]},
        )

        assert response.status_code == 412
        blobs = storage.blob_service.containers["product-images"]["blobs"]
        assert list(blobs.values()) == [b"old"]
        stored = client.get(f"/products/{created['RowKey']}").json()
        assert stored["image_url"] == created["image_url"]

    def test_negative_stock_is_rejected(self, client):
        response = client.post(
            "/products/",
            data={"name": "Bad", "price": "1.00", "stock_available": "-1"},
        )

        assert response.status_code == 422

    def test_edit(self, client, widget):
        response = client.put(
            f"/products/{widget['RowKey']}",
            data={"name": "Widget XL", "description": "Bigger", "price": "12.50", "stock_available": "4"},
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Widget XL"
        assert response.json()["price"] == "12.50"
        assert response.json()["etag"] != widget["etag"]

    def test_edit_with_stale_etag(self, client, widget):
        client.put(
            f"/products/{widget['RowKey']}",
            data={"name": "Widget", "price": "9.99", "stock_available": "9"},
        )

        response = client.put(
            f"/products/{widget['RowKey']}",
            data={"name": "Widget", "price": "9.99", "stock_available": "1"},
            headers={"If-Match": widget["etag"]},
        )

        assert response.status_code == 412
        assert client.get(f"/products/{widget['RowKey']}").json()["stock_available"] == 9

    def test_edit_missing_product(self, client):
        response = client.put(
            "/products/missing",
            data={"name": "Ghost", "price": "1.00", "stock_available": "1"},
        )

        assert response.status_code == 404

    def test_missing_product_is_404(self, client):
        assert client.get("/products/missing").status_code == 404

    def test_delete(self, client, widget):
        response = client.delete(f"/products/{widget['RowKey']}")

        assert response.status_code == 200
        assert response.json()["message"] == "Product deleted successfully"
        assert client.get(f"/products/{widget['RowKey']}").status_code == 404


class TestCustomers:
    def test_create_and_list(self, client, customer):
        response = client.get("/customers/")

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert response.json()["items"][0]["username"] == "jdoe"

    def test_missing_fields(self, client):
        response = client.post("/customers/", json={"username": "x"})

        assert response.status_code == 422

    def test_replace(self, client, customer):
        response = client.put(
            f"/customers/{customer['RowKey']}",
            json={"username": "jdoe", "name": "Janet", "surname": "Doe"},
            headers={"If-Match": customer["etag"]},
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Janet"
        assert response.json()["email"] == ""

    def test_replace_with_stale_etag(self, client, customer):
        client.put(
            f"/customers/{customer['RowKey']}",
            json={"username": "jdoe", "name": "Janet", "surname": "Doe"},
        )

        response = client.put(
            f"/customers/{customer['RowKey']}",
            json={"username": "jdoe", "name": "Joan", "surname": "Doe"},
            headers={"If-Match": customer["etag"]},
        )

        assert response.status_code == 412

    def test_delete_missing_customer_succeeds(self, client):
        response = client.delete("/customers/does-not-exist")

        assert response.status_code == 200
        assert response.json()["message"] == "Customer deleted successfully"

    @pytest.mark.parametrize("status_code, detail", [(401, "Unauthorized"), (403, "Forbidden")])
    def test_storage_auth_failure_keeps_status(self, client, storage, status_code, detail):
        storage.table_service.fail_status = status_code

        response = client.get("/customers/")

        assert response.status_code == status_code
        assert response.json() == {"detail": detail}

    def test_storage_server_failure_is_500(self, client, storage):
        storage.table_service.fail_status = 503

        response = client.get("/customers/")

        assert response.status_code == 500
        assert response.json() == {"detail": "A storage error occurred."}

    def test_missing_customer_is_404(self, client):
        assert client.get("/customers/missing").status_code == 404


class TestOrders:
    def test_create_order(self, client, customer, widget):
        response = place_order(client, customer, widget, 3)

        assert response.status_code == 201
        order = response.json()
        assert Decimal(order["total_price"]) == Decimal("29.97")
        assert order["status"] == "Submitted"
        assert order["username"] == "jdoe"
        assert client.get(f"/products/{widget['RowKey']}").json()["stock_available"] == 7

        fetched = client.get(f"/orders/{order['RowKey']}")
        assert fetched.status_code == 200
        assert fetched.json()["product_name"] == "Widget"

    def test_insufficient_stock(self, client, customer, widget):
        response = place_order(client, customer, widget, 11)

        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient stock available: 10"
        assert client.get("/orders/").json()["items"] == []
        assert client.get(f"/products/{widget['RowKey']}").json()["stock_available"] == 10

    def test_invalid_selection(self, client, customer):
        response = client.post(
            "/orders/",
            json={"customer_id": customer["RowKey"], "product_id": "nope", "quantity": 1},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid customer or product selected"

    def test_quantity_must_be_positive(self, client, customer, widget):
        assert place_order(client, customer, widget, 0).status_code == 422

    def test_form_options(self, client, customer, widget):
        response = client.get("/orders/form-options")

        assert response.status_code == 200
        assert [c["username"] for c in response.json()["customers"]] == ["jdoe"]
        assert [p["name"] for p in response.json()["products"]] == ["Widget"]

    def test_product_price_lookup(self, client, widget):
        response = client.post("/orders/product-price", json={"product_id": widget["RowKey"]})

        assert response.json() == {
            "success": True,
            "price": "9.99",
            "stock": 10,
            "product_name": "Widget",
        }

    def test_product_price_lookup_unknown_product(self, client):
        response = client.post("/orders/product-price", json={"product_id": "nope"})

        assert response.status_code == 200
        assert response.json()["success"] is False

    def test_status_update(self, client, customer, widget):
        order = place_order(client, customer, widget, 1).json()

        response = client.post("/orders/status", json={"id": order["RowKey"], "new_status": "Shipped"})

        assert response.json() == {"success": True, "message": "Order status updated to Shipped"}
        assert client.get(f"/orders/{order['RowKey']}").json()["status"] == "Shipped"

    def test_status_update_unknown_order(self, client):
        response = client.post("/orders/status", json={"id": "nope", "new_status": "Shipped"})

        assert response.json() == {"success": False, "message": "Order not found"}

    def test_edit_order(self, client, customer, widget):
        order = place_order(client, customer, widget, 1).json()

        response = client.put(
            f"/orders/{order['RowKey']}",
            json={"order_date": "2026-12-01", "status": "Delivered"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "Delivered"
        assert response.json()["order_date"].startswith("2026-12-01")

    def test_edit_missing_order(self, client):
        response = client.put("/orders/nope", json={"order_date": "2026-12-01", "status": "Delivered"})

        assert response.status_code == 404

    def test_delete_order(self, client, customer, widget):
        order = place_order(client, customer, widget, 1).json()

        assert client.delete(f"/orders/{order['RowKey']}").status_code == 200
        assert client.get(f"/orders/{order['RowKey']}").status_code == 404


class TestUploads:
    def test_upload_and_download_proof_of_payment(self, client, storage):
        response = client.post(
            "/uploads/",
            data={"order_id": "42", "customer_name": "Jane Doe"},
            files={"proof_of_payment": ("proof.pdf", b"%PDF-1.7 paid", "application/pdf")},
        )

        assert response.status_code == 201
        body = response.json()
        assert "/payment-proofs/" in body["blob_url"]
        assert body["blob_url"].endswith("_proof.pdf")
        assert body["order_id"] == "42"
        assert body["message"].startswith("File uploaded successfully!")

        download = client.get(f"/uploads/{body['share_file_name']}")
        assert download.status_code == 200
        assert download.content == b"%PDF-1.7 paid"

    def test_download_of_non_ascii_file_name(self, client):
        uploaded = client.post(
            "/uploads/",
            files={"proof_of_payment": ("收据.pdf", b"%PDF paid", "application/pdf")},
        ).json()
        share_file_name = uploaded["share_file_name"]
        assert share_file_name.endswith("_收据.pdf")

        download = client.get(f"/uploads/{share_file_name}")

        assert download.status_code == 200
        assert download.content == b"%PDF paid"
        disposition = download.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="')
        assert disposition.endswith(f"filename*=UTF-8''{quote(share_file_name)}")

    def test_ascii_file_name_keeps_plain_header(self, client):
        uploaded = client.post(
            "/uploads/",
            files={"proof_of_payment": ("proof.pdf", b"%PDF paid", "application/pdf")},
        ).json()

        download = client.get(f"/uploads/{uploaded['share_file_name']}")

        assert download.headers["content-disposition"] == (
            f'attachment; filename="{uploaded["share_file_name"]}"'
        )

    def test_empty_upload_is_rejected(self, client):
        response = client.post(
            "/uploads/",
            files={"proof_of_payment": ("proof.pdf", b"", "application/pdf")},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Please select a file to upload."

    def test_missing_file_field(self, client):
        assert client.post("/uploads/", data={"order_id": "42"}).status_code == 422

    def test_download_missing_file(self, client):
        assert client.get("/uploads/missing.pdf").status_code == 404
