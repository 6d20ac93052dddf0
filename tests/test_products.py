from bson import ObjectId


def test_first_product_for_unsubscribed_owner(client, make_user):
    make_user("a@x.com")
    body = {"name": "Widget", "ownerEmail": "a@x.com", "tags": ["ai"]}
    res = client.post("/products", json=body)
    assert res.status_code == 200
    product = res.json()
    assert product["status"] == "pending"
    assert product["votes"] == 0
    assert product["report"] == 0
    assert product["isFeatured"] is False
    assert product["votedUser"] is None

    again = client.post("/products", json=body)
    assert again.status_code == 409


def test_subscribed_owner_has_no_quota(client, make_user):
    make_user("a@x.com", subscribed=True)
    for name in ("One", "Two", "Three"):
        res = client.post("/products", json={"name": name, "ownerEmail": "a@x.com"})
        assert res.status_code == 200


def test_product_for_unknown_owner_conflicts(client, db):
    res = client.post("/products", json={"name": "Widget", "ownerEmail": "ghost@x.com"})
    assert res.status_code == 409
    assert db["product"].count_documents({}) == 0


def test_created_status_cannot_be_supplied(client, make_user):
    make_user("a@x.com")
    res = client.post("/products", json={"name": "Widget", "ownerEmail": "a@x.com", "status": "Accepted", "votes": 50})
    assert res.json()["status"] == "pending"
    assert res.json()["votes"] == 0


def test_vote_once_then_conflict(client, make_product):
    product = make_product()
    url = f"/products/vote/{product['id']}"

    first = client.patch(url, json={"userEmail": "a@x.com"})
    assert first.status_code == 200
    assert first.json()["votes"] == 1
    assert first.json()["votedUser"] == "a@x.com"

    second = client.patch(url, json={"userEmail": "a@x.com"})
    assert second.status_code == 409
    assert second.json() == {"message": "You already voted"}


def test_vote_marker_only_remembers_latest_voter(client, make_product):
    product = make_product()
    url = f"/products/vote/{product['id']}"

    assert client.patch(url, json={"userEmail": "a@x.com"}).status_code == 200
    res = client.patch(url, json={"userEmail": "b@x.com"})
    assert res.status_code == 200
    assert res.json()["votedUser"] == "b@x.com"

    # a@x.com is no longer in the slot, so the repeat goes through
    res = client.patch(url, json={"userEmail": "a@x.com"})
    assert res.status_code == 200
    assert res.json()["votes"] == 3


def test_vote_missing_product(client):
    res = client.patch(f"/products/vote/{ObjectId()}", json={"userEmail": "a@x.com"})
    assert res.status_code == 404
    assert res.json() == {"message": "Product not found"}


def test_report_once_then_conflict(client, make_product):
    product = make_product()
    url = f"/products/report/{product['id']}"

    first = client.patch(url, json={"userEmail": "a@x.com"})
    assert first.status_code == 200
    assert first.json()["report"] == 1
    assert first.json()["reportedStatus"] == "reported"
    assert first.json()["reportedUser"] == "a@x.com"

    assert client.patch(url, json={"userEmail": "a@x.com"}).status_code == 409
    assert client.patch(url, json={"userEmail": "b@x.com"}).json()["report"] == 2


def test_update_product_content(client, make_product):
    product = make_product()
    res = client.put(f"/product-update/{product['id']}", json={"name": "Gadget", "tags": ["hardware"]})
    assert res.status_code == 200
    assert res.json()["name"] == "Gadget"
    assert res.json()["tags"] == ["hardware"]


def test_update_product_ignores_protected_fields(client, make_product):
    product = make_product()
    res = client.put(f"/product-update/{product['id']}", json={"votes": 100, "status": "Accepted"})
    assert res.status_code == 400
    assert res.json() == {"message": "No fields to update"}


def test_update_missing_product(client):
    res = client.put(f"/product-update/{ObjectId()}", json={"name": "Gadget"})
    assert res.status_code == 404


def test_delete_product(client, db, make_product):
    product = make_product()
    res = client.delete(f"/product-data-delete/{product['id']}")
    assert res.status_code == 200
    assert res.json()["deleted_count"] == 1
    assert db["product"].count_documents({}) == 0

    assert client.delete(f"/product-data-delete/{product['id']}").json()["deleted_count"] == 0


def test_product_details(client, make_product):
    product = make_product()
    assert client.get(f"/product-details/{product['id']}").json()["name"] == "Widget"
    assert client.get(f"/get-product/{product['id']}").json()["id"] == product["id"]
    assert client.get(f"/product-details/{ObjectId()}").status_code == 404
    assert client.get("/product-details/xyz").status_code == 400


def test_products_sorted_by_recency(client, make_product):
    make_product(name="Old", timestamp="2023-01-01T00:00:00Z")
    make_product(name="New", timestamp="2024-06-01T00:00:00Z")
    make_product(name="Mid", timestamp="2023-09-01T00:00:00Z")
    names = [p["name"] for p in client.get("/products").json()]
    assert names == ["New", "Mid", "Old"]


def test_all_products_and_count(client, make_product):
    make_product(name="One")
    make_product(name="Two")
    assert len(client.get("/all-product").json()) == 2
    assert client.get("/all-product-count").json() == {"count": 2}


def test_pagination(client, make_product):
    for i in range(5):
        make_product(name=f"P{i}")
    assert [p["name"] for p in client.get("/product-pagination?page=0&size=2").json()] == ["P0", "P1"]
    assert [p["name"] for p in client.get("/product-pagination?page=2&size=2").json()] == ["P4"]
    assert client.get("/product-pagination?page=3&size=2").json() == []


def test_search_by_tag_is_case_insensitive_substring(client, make_product):
    make_product(name="Bot", tags=["Machine Learning", "chat"])
    make_product(name="Saw", tags=["tools"])
    names = [p["name"] for p in client.get("/product/search?tags=learn").json()]
    assert names == ["Bot"]
    assert client.get("/product/search?tags=(").json() == []


def test_products_by_owner(client, make_product):
    make_product(owner="a@x.com", name="Mine")
    make_product(owner="b@x.com", name="Theirs")
    names = [p["name"] for p in client.get("/specific-product/a@x.com").json()]
    assert names == ["Mine"]


def test_report_missing_product(client):
    res = client.patch(f"/products/report/{ObjectId()}", json={"userEmail": "a@x.com"})
    assert res.status_code == 404
    assert res.json() == {"message": "Product not found"}


def test_quota_applies_at_creation_only(client, db, make_user):
    make_user("a@x.com", subscribed=True)
    for name in ("One", "Two"):
        assert client.post("/products", json={"name": name, "ownerEmail": "a@x.com"}).status_code == 200

    db["user"].update_one({"email": "a@x.com"}, {"$set": {"isSubscribed": False}})
    res = client.post("/products", json={"name": "Three", "ownerEmail": "a@x.com"})
    assert res.status_code == 409
    assert db["product"].count_documents({"ownerEmail": "a@x.com"}) == 2


def test_update_product_skips_null_fields(client, db, make_product):
    product = make_product(tags=["ai"])
    res = client.put(f"/product-update/{product['id']}", json={"name": None, "tags": None, "description": "New"})
    assert res.status_code == 200
    assert res.json()["name"] == "Widget"
    assert res.json()["tags"] == ["ai"]
    assert res.json()["description"] == "New"

    res = client.put(f"/product-update/{product['id']}", json={"name": None})
    assert res.status_code == 400


def test_pagination_defaults_and_bad_params(client, make_product):
    for i in range(12):
        make_product(name=f"P{i}")
    assert len(client.get("/product-pagination").json()) == 10
    assert len(client.get("/product-pagination?page=0&size=0").json()) == 12

    res = client.get("/product-pagination?page=abc&size=2")
    assert res.status_code == 422
    assert "page" in res.json()["message"]
