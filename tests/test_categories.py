from .conftest import auth

CATEGORIES = "/v1/categories"


def create(client, admin, **body):
    payload = {"type": "course", **body}
    return client.post(CATEGORIES, json=payload, headers=auth(admin))


def test_unique_name_and_slug(client, admin):
    assert create(client, admin, name="Math", slug="math").status_code == 201
    assert create(client, admin, name="Math", slug="maths").status_code == 400
    assert create(client, admin, name="Maths", slug="math").status_code == 400


def test_parent_with_children_cannot_be_deleted(client, admin):
    parent = create(client, admin, name="Science", slug="science").json()
    child = create(client, admin, name="Physics", slug="physics", parent_id=parent["id"]).json()

    subs = client.get(f"{CATEGORIES}/{parent['id']}/subcategories").json()
    assert [c["slug"] for c in subs] == ["physics"]
    assert client.delete(f"{CATEGORIES}/{parent['id']}", headers=auth(admin)).status_code == 400
    assert client.delete(f"{CATEGORIES}/{child['id']}", headers=auth(admin)).status_code == 204
    assert client.delete(f"{CATEGORIES}/{parent['id']}", headers=auth(admin)).status_code == 204


def test_by_type_hides_inactive(client, admin):
    create(client, admin, name="Art", slug="art")
    hidden = create(client, admin, name="Old", slug="old").json()
    client.patch(f"{CATEGORIES}/{hidden['id']}/toggle-status", headers=auth(admin))

    active = client.get(f"{CATEGORIES}/type/course").json()
    assert [c["slug"] for c in active] == ["art"]
    everything = client.get(f"{CATEGORIES}/type/course?include_inactive=true").json()
    assert len(everything) == 2


def test_sort_order_and_stats(client, admin):
    first = create(client, admin, name="B", slug="b").json()
    create(client, admin, name="A", slug="a", sort_order=5)
    client.patch(f"{CATEGORIES}/{first['id']}/sort-order", json={"sort_order": 9}, headers=auth(admin))

    listed = client.get(CATEGORIES).json()
    assert [c["slug"] for c in listed["results"]] == ["a", "b"]
    stats = client.get(f"{CATEGORIES}/stats", headers=auth(admin)).json()
    assert stats["total"] == 2
    assert stats["course"] == 2


def test_students_cannot_create(client, student):
    assert create(client, student, name="X", slug="x").status_code == 403
