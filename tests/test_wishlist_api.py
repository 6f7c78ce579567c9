"""Tests for the wishlist endpoints."""

import uuid

from sqlmodel import select

from app.models.wishlist import WishlistItem

API = "/api/v1"


def save(client, product, **prefs):
    response = client.post(f"{API}/wishlist", json={"product_id": str(product.id), **prefs})
    assert response.status_code == 200, response.text
    return response.json()


class TestWishlist:
    def test_requires_login(self, client):
        assert client.get(f"{API}/wishlist").status_code == 401

    def test_starts_empty(self, client, customer):
        client.login(customer)

        data = client.get(f"{API}/wishlist").json()

        assert data == {"items": [], "count": 0}

    def test_save_product(self, client, customer, make_product):
        client.login(customer)
        product = make_product(name="Silk Abaya", price=18000, stock=3, category="abaya")

        data = save(client, product, size="M", color="Black")

        assert data["count"] == 1
        item = data["items"][0]
        assert item["product_id"] == str(product.id)
        assert item["name"] == "Silk Abaya"
        assert item["price"] == 18000
        assert item["in_stock"] is True
        assert item["size"] == "M"
        assert item["color"] == "Black"

    def test_saving_again_updates_preferences(self, client, customer, make_product, session):
        client.login(customer)
        product = make_product()
        save(client, product, size="S", color="Navy")

        data = save(client, product, size="L")

        assert data["count"] == 1
        assert data["items"][0]["size"] == "L"
        assert data["items"][0]["color"] == "Navy"
        saved = session.exec(select(WishlistItem).where(WishlistItem.user_id == customer.id)).all()
        assert len(saved) == 1

    def test_unknown_or_inactive_product(self, client, customer, make_product):
        client.login(customer)
        hidden = make_product(is_active=False)

        missing = client.post(f"{API}/wishlist", json={"product_id": str(uuid.uuid4())})
        inactive = client.post(f"{API}/wishlist", json={"product_id": str(hidden.id)})

        assert missing.status_code == 404
        assert missing.json()["kind"] == "product_not_found"
        assert inactive.status_code == 404

    def test_each_shopper_has_their_own_list(
        self, client, customer, other_customer, make_product
    ):
        product = make_product()
        client.login(customer)
        save(client, product)

        client.login(other_customer)

        assert client.get(f"{API}/wishlist").json()["count"] == 0

    def test_remove(self, client, customer, make_product):
        client.login(customer)
        first = make_product(name="Jersey Hijab")
        second = make_product(name="Plain Abaya", category="abaya")
        save(client, first)
        save(client, second)

        response = client.delete(f"{API}/wishlist/{first.id}")

        assert response.status_code == 200
        assert [i["name"] for i in response.json()["items"]] == ["Plain Abaya"]

    def test_remove_missing_item(self, client, customer, make_product):
        client.login(customer)
        product = make_product()

        response = client.delete(f"{API}/wishlist/{product.id}")

        assert response.status_code == 404

    def test_clear(self, client, customer, make_product):
        client.login(customer)
        save(client, make_product(name="Jersey Hijab"))
        save(client, make_product(name="Plain Abaya", category="abaya"))

        response = client.delete(f"{API}/wishlist")

        assert response.json() == {"items": [], "count": 0}
        assert client.get(f"{API}/wishlist").json()["count"] == 0

    def test_deleted_product_leaves_wishlists(self, client, customer, admin, make_product):
        product = make_product()
        client.login(customer)
        save(client, product)

        client.login(admin)
        assert client.delete(f"{API}/products/{product.id}").status_code == 204

        client.login(customer)
        assert client.get(f"{API}/wishlist").json()["count"] == 0


class TestMoveToCart:
    def test_returns_cart_line_and_removes_item(self, client, customer, make_product):
        client.login(customer)
        product = make_product(name="Chiffon Hijab", price=5000, stock=10)
        save(client, product, size="One Size", color="Blush")

        response = client.post(
            f"{API}/wishlist/{product.id}/move-to-cart", json={"quantity": 2}
        )

        assert response.status_code == 200
        line = response.json()
        assert line["product_id"] == str(product.id)
        assert line["price"] == 5000
        assert line["quantity"] == 2
        assert line["size"] == "One Size"
        assert line["color"] == "Blush"
        assert client.get(f"{API}/wishlist").json()["count"] == 0

    def test_quantity_defaults_to_one(self, client, customer, make_product):
        client.login(customer)
        product = make_product()
        save(client, product)

        response = client.post(f"{API}/wishlist/{product.id}/move-to-cart")

        assert response.status_code == 200
        assert response.json()["quantity"] == 1

    def test_not_enough_stock_keeps_item(self, client, customer, make_product):
        client.login(customer)
        product = make_product(stock=1)
        save(client, product)

        response = client.post(
            f"{API}/wishlist/{product.id}/move-to-cart", json={"quantity": 3}
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "insufficient_stock"
        assert client.get(f"{API}/wishlist").json()["count"] == 1

    def test_item_not_saved(self, client, customer, make_product):
        client.login(customer)
        product = make_product()

        response = client.post(f"{API}/wishlist/{product.id}/move-to-cart")

        assert response.status_code == 404


class TestWishlistAlerts:
    def test_nothing_to_report(self, client, customer, make_product):
        client.login(customer)
        save(client, make_product(stock=4))

        data = client.get(f"{API}/wishlist/notifications/check").json()

        assert data == {"has_notifications": False, "notifications": []}

    def test_restock(self, client, customer, make_product, session):
        client.login(customer)
        product = make_product(name="Lace Jalabiya", stock=0, category="jalabiya")
        save(client, product)

        product.stock = 5
        session.add(product)
        session.commit()

        data = client.get(f"{API}/wishlist/notifications/check").json()

        assert data["has_notifications"] is True
        [alert] = data["notifications"]
        assert alert["type"] == "wishlist_restock"
        assert alert["product_id"] == str(product.id)
        assert "Lace Jalabiya" in alert["message"]

    def test_price_drop(self, client, customer, make_product, session):
        client.login(customer)
        product = make_product(price=5000)
        save(client, product)

        product.discount = 20
        session.add(product)
        session.commit()

        data = client.get(f"{API}/wishlist/notifications/check").json()

        [alert] = data["notifications"]
        assert alert["type"] == "wishlist_price_drop"
        assert "4,000.00" in alert["message"]
