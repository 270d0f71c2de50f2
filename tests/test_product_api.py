"""HTTP tests for the product catalog endpoints."""

from pathlib import Path
from unittest.mock import AsyncMock

from sqlalchemy.ext.asyncio import create_async_engine

from app.core.database import create_session_maker
from app.dao.product_dao import product_dao


PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class TestHealth:
    def test_health_reports_database(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "db": True}


class TestCreateProduct:
    def test_create_without_image(self, client):
        response = client.post(
            "/products",
            data={"name": "Mug", "slug": "mug-1", "price": "9.99", "category": "kitchen"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["imageUrl"] is None
        assert body["name"] == "Mug"
        assert body["slug"] == "mug-1"
        assert body["price"] == "9.99"
        assert body["category"] == "kitchen"
        assert body["stock"] == 0
        assert body["description"] is None
        assert isinstance(body["id"], int)
        assert "createdAt" in body

    def test_missing_required_field_is_rejected_without_insert(self, client):
        for missing in ("name", "slug", "price", "category"):
            data = {"name": "Mug", "slug": f"mug-{missing}", "price": "9.99", "category": "kitchen"}
            del data[missing]

            response = client.post("/products", data=data)

            assert response.status_code == 400
            assert response.json() == {"error": "Missing required fields"}

        listing = client.get("/products").json()
        assert listing["pagination"]["total"] == 0

    def test_duplicate_slug(self, client, create_product):
        create_product("mug-1")

        response = client.post(
            "/products",
            data={"name": "Other Mug", "slug": "mug-1", "price": "5", "category": "kitchen"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Product slug already exists"}

    def test_invalid_price(self, client):
        response = client.post(
            "/products",
            data={"name": "Mug", "slug": "mug-1", "price": "cheap", "category": "kitchen"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid price"}

    def test_unparsable_stock_defaults_to_zero(self, client, create_product):
        body = create_product("mug-1", stock="lots")

        assert body["stock"] == 0

    def test_negative_stock_is_rejected(self, client):
        response = client.post(
            "/products",
            data={"name": "Mug", "slug": "mug-1", "price": "1", "category": "kitchen", "stock": "-3"},
        )

        assert response.status_code == 400

    def test_external_image_url_is_trimmed_and_kept(self, client, create_product):
        body = create_product("mug-1", imageUrl="  https://cdn.example.com/mug.png ")

        assert body["imageUrl"] == "https://cdn.example.com/mug.png"

    def test_uploaded_image_wins_over_url(self, client, test_settings):
        response = client.post(
            "/products",
            data={
                "name": "Mug",
                "slug": "mug-1",
                "price": "9.99",
                "category": "kitchen",
                "imageUrl": "https://cdn.example.com/mug.png",
            },
            files={"image": ("mug.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 201
        image_url = response.json()["imageUrl"]
        assert image_url.startswith("http://testserver/uploads/")
        assert image_url.endswith(".png")

        stored_name = image_url.rsplit("/", 1)[1]
        assert (Path(test_settings.upload_dir) / stored_name).read_bytes() == PNG_BYTES

        served = client.get(f"/uploads/{stored_name}")
        assert served.status_code == 200
        assert served.content == PNG_BYTES

    def test_rejects_non_image_upload(self, client):
        response = client.post(
            "/products",
            data={"name": "Mug", "slug": "mug-1", "price": "9.99", "category": "kitchen"},
            files={"image": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Images only!"}

    def test_image_url_uses_request_host(self, client, create_product):
        response = client.post(
            "/products",
            data={"name": "Mug", "slug": "mug-1", "price": "9.99", "category": "kitchen"},
            files={"image": ("mug.jpg", b"jpeg", "image/jpeg")},
            headers={"host": "shop.example.org:8080"},
        )

        assert response.json()["imageUrl"].startswith("http://shop.example.org:8080/uploads/")


class TestListProducts:
    def test_empty_catalog(self, client):
        response = client.get("/products")

        assert response.status_code == 200
        assert response.json() == {
            "data": [],
            "pagination": {"total": 0, "page": 1, "limit": 20, "totalPages": 0},
        }

    def test_category_pagination(self, client, create_product):
        for i in range(1, 6):
            create_product(f"kitchen-{i}", category="kitchen")
        create_product("lamp", category="office")

        response = client.get("/products", params={"category": "kitchen", "page": 2, "limit": 2})

        assert response.status_code == 200
        body = response.json()
        # newest first: kitchen-5, kitchen-4 | kitchen-3, kitchen-2 | kitchen-1
        assert [p["slug"] for p in body["data"]] == ["kitchen-3", "kitchen-2"]
        assert body["pagination"] == {"total": 5, "page": 2, "limit": 2, "totalPages": 3}

    def test_search_and_price_filters(self, client, create_product):
        create_product("blue-mug", name="Blue Mug", price="9.99")
        create_product("teapot", name="Teapot", description="Holds four mugs", price="25.00")
        create_product("red-mug", name="Red Mug", price="40.00")

        response = client.get("/products", params={"search": "MUG", "minPrice": "9.99", "maxPrice": "25"})

        slugs = {p["slug"] for p in response.json()["data"]}
        assert slugs == {"blue-mug", "teapot"}
        assert response.json()["pagination"]["total"] == 2

    def test_blank_filters_are_ignored(self, client, create_product):
        create_product("mug-1")

        response = client.get("/products", params={"search": "", "category": "", "minPrice": "", "maxPrice": ""})

        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1

    def test_invalid_query_parameters(self, client):
        assert client.get("/products", params={"page": 0}).status_code == 400
        assert client.get("/products", params={"limit": "many"}).status_code == 400
        assert client.get("/products", params={"minPrice": "abc"}).status_code == 400

    def test_absolute_image_urls_unchanged_in_listing(self, client, create_product):
        create_product("mug-1", imageUrl="https://cdn.example.com/mug.png")

        response = client.get("/products", headers={"host": "elsewhere.test"})

        assert response.json()["data"][0]["imageUrl"] == "https://cdn.example.com/mug.png"


class TestGetProduct:
    def test_get_existing(self, client, create_product):
        created = create_product("mug-1")

        response = client.get(f"/products/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing(self, client):
        response = client.get("/products/9999")

        assert response.status_code == 404
        assert response.json() == {"error": "Product not found"}


class TestUpdateProduct:
    def test_update_preserves_image_when_none_supplied(self, client, create_product):
        created = create_product("mug-1", imageUrl="https://cdn.example.com/mug.png")

        response = client.put(f"/products/{created['id']}", data={"name": "Renamed Mug", "price": "11.00"})

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Renamed Mug"
        assert body["price"] == "11.00"
        assert body["slug"] == "mug-1"
        assert body["imageUrl"] == "https://cdn.example.com/mug.png"

    def test_update_preserves_uploaded_image_path(self, client):
        created = client.post(
            "/products",
            data={"name": "Mug", "slug": "mug-1", "price": "9.99", "category": "kitchen"},
            files={"image": ("mug.gif", b"GIF89a", "image/gif")},
        ).json()

        response = client.put(f"/products/{created['id']}", data={"stock": "7", "imageUrl": "  "})

        assert response.json()["imageUrl"] == created["imageUrl"]
        assert response.json()["stock"] == 7

    def test_update_replaces_image_with_url(self, client, create_product):
        created = create_product("mug-1", imageUrl="https://cdn.example.com/old.png")

        response = client.put(f"/products/{created['id']}", data={"imageUrl": "https://cdn.example.com/new.png"})

        assert response.json()["imageUrl"] == "https://cdn.example.com/new.png"

    def test_update_to_existing_slug(self, client, create_product):
        create_product("mug-1")
        second = create_product("mug-2")

        response = client.put(f"/products/{second['id']}", data={"slug": "mug-1"})

        assert response.status_code == 400
        assert response.json() == {"error": "Product slug already exists"}

    def test_update_missing(self, client):
        response = client.put("/products/9999", data={"name": "Ghost"})

        assert response.status_code == 404
        assert response.json() == {"error": "Product not found"}


class TestDeleteProduct:
    def test_delete(self, client, create_product):
        created = create_product("mug-1")

        response = client.delete(f"/products/{created['id']}")

        assert response.status_code == 200
        assert response.json() == {"message": "Product deleted", "id": created["id"]}
        assert client.get(f"/products/{created['id']}").status_code == 404

    def test_delete_missing(self, client):
        response = client.delete("/products/9999")

        assert response.status_code == 404
        assert response.json() == {"error": "Product not found"}


class TestCategories:
    def test_distinct_sorted_categories(self, client, create_product):
        create_product("hose", category="garden")
        create_product("mug-1", category="kitchen")
        create_product("mug-2", category="kitchen")
        create_product("lamp", category="office")

        response = client.get("/categories")

        assert response.status_code == 200
        assert response.json() == ["garden", "kitchen", "office"]


class TestServerErrors:
    def test_list_failure_hides_internal_detail(self, client, monkeypatch):
        monkeypatch.setattr(
            product_dao, "list_products", AsyncMock(side_effect=RuntimeError("connection reset by 10.0.0.7"))
        )

        response = client.get("/products")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch products"}
        assert "10.0.0.7" not in response.text

    def test_image_storage_failure_on_create(self, client, monkeypatch):
        storage = client.app.state.image_storage
        monkeypatch.setattr(storage, "save", AsyncMock(side_effect=OSError("No space left on /srv/uploads")))

        response = client.post(
            "/products",
            data={"name": "Mug", "slug": "mug-1", "price": "9.99", "category": "kitchen"},
            files={"image": ("mug.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create product"}
        assert "/srv/uploads" not in response.text
        assert client.get("/products").json()["pagination"]["total"] == 0

    def test_categories_failure(self, client, monkeypatch):
        monkeypatch.setattr(product_dao, "get_categories", AsyncMock(side_effect=RuntimeError("boom")))

        response = client.get("/categories")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch categories"}

    def test_health_reports_unreachable_database(self, client, tmp_path):
        broken_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nowhere.db'}")
        client.app.state.session_maker = create_session_maker(broken_engine)

        response = client.get("/health")

        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "error"
        assert body["message"]
