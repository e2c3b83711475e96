"""API tests for book loading, saving, assignments and collaborators."""

from uuid import uuid4


def _page_payload(page):
    return page.model_dump(mode="json")


class TestGetBook:
    def test_author_sees_only_assigned_page(self, client, book, author, auth_headers):
        res = client.get(f"/api/books/{book.id}", headers=auth_headers(author))

        assert res.status_code == 200
        data = res.json()
        assert [p["page_number"] for p in data["book"]["pages"]] == [2]
        caps = data["capabilities"]
        assert caps["visible_pages"] == [2]
        assert caps["active_page_number"] == 2
        assert caps["forced_page_change"] is True
        assert caps["can_manage_pages"] is False
        assert data["roster"][0]["assigned_pages"] == [2]

    def test_owner_sees_everything(self, client, book, owner, auth_headers):
        res = client.get(f"/api/books/{book.id}?current_page=3", headers=auth_headers(owner))
        data = res.json()
        assert len(data["book"]["pages"]) == 3
        assert data["capabilities"]["active_page_number"] == 3
        assert data["capabilities"]["can_view_settings"] is True

    def test_admin_treated_as_publisher(self, client, book, admin, auth_headers):
        res = client.get(f"/api/books/{book.id}", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.json()["capabilities"]["can_manage_pages"] is True

    def test_outsider_forbidden(self, client, book, outsider, auth_headers):
        res = client.get(f"/api/books/{book.id}", headers=auth_headers(outsider))
        assert res.status_code == 403

    def test_missing_book(self, client, owner, auth_headers):
        res = client.get(f"/api/books/{uuid4()}", headers=auth_headers(owner))
        assert res.status_code == 404

    def test_requires_auth(self, client, book):
        assert client.get(f"/api/books/{book.id}").status_code == 401

    def test_bad_token(self, client, book):
        res = client.get(f"/api/books/{book.id}", headers={"Authorization": "Bearer junk"})
        assert res.status_code == 401

    def test_cookie_auth(self, client, book, owner, auth_headers):
        token = auth_headers(owner)["Authorization"].split(" ")[1]
        client.cookies.set("access_token", f"Bearer {token}")
        assert client.get(f"/api/books/{book.id}").status_code == 200


class TestSaveBook:
    def test_author_saves_assigned_page(self, client, test_ctx, book, author, auth_headers):
        page = book.get_page(2)
        page.elements[0].text = "Rewritten"

        res = client.put(
            f"/api/books/{book.id}",
            json={"pages": [_page_payload(page)]},
            headers=auth_headers(author),
        )

        assert res.status_code == 200
        stored = test_ctx.book_repo.get_by_id(book.id)
        assert stored.get_page(2).elements[0].text == "Rewritten"
        assert stored.get_page(1).elements[0].text == "Page 1"
        assert stored.page_count == 3
        assert stored.revision == book.revision + 1

    def test_author_cannot_touch_hidden_page(self, client, test_ctx, book, author, auth_headers):
        page = book.get_page(1)
        page.elements[0].text = "Hijacked"

        res = client.put(
            f"/api/books/{book.id}",
            json={"pages": [_page_payload(page)]},
            headers=auth_headers(author),
        )

        assert res.status_code == 403
        assert test_ctx.book_repo.get_by_id(book.id).get_page(1).elements[0].text == "Page 1"

    def test_author_cannot_add_pages(self, client, book, author, auth_headers):
        new_page = {"page_number": 4, "elements": []}
        res = client.put(
            f"/api/books/{book.id}", json={"pages": [new_page]}, headers=auth_headers(author)
        )
        assert res.status_code == 403

    def test_unchanged_hidden_pages_are_accepted(self, client, book, author, auth_headers):
        pages = [_page_payload(p) for p in book.pages]
        res = client.put(
            f"/api/books/{book.id}", json={"pages": pages}, headers=auth_headers(author)
        )
        assert res.status_code == 200

    def test_owner_replaces_pages(self, client, test_ctx, book, owner, auth_headers):
        pages = [_page_payload(p) for p in book.pages[:2]]
        res = client.put(
            f"/api/books/{book.id}",
            json={"name": "Renamed", "pages": pages},
            headers=auth_headers(owner),
        )
        assert res.status_code == 200
        assert res.json()["name"] == "Renamed"
        assert test_ctx.book_repo.get_by_id(book.id).page_count == 2

    def test_owner_page_numbers_must_be_contiguous(self, client, book, owner, auth_headers):
        pages = [_page_payload(p) for p in book.pages]
        pages[2]["page_number"] = 7
        res = client.put(
            f"/api/books/{book.id}", json={"pages": pages}, headers=auth_headers(owner)
        )
        assert res.status_code == 400

    def test_outsider_forbidden(self, client, book, outsider, auth_headers):
        res = client.put(
            f"/api/books/{book.id}", json={"pages": []}, headers=auth_headers(outsider)
        )
        assert res.status_code == 403


class TestAssignments:
    def test_get(self, client, book, author, auth_headers):
        res = client.get(f"/api/books/{book.id}/assignments", headers=auth_headers(author))
        assert res.status_code == 200
        assigned = {a["page_number"]: a["user_id"] for a in res.json()["assignments"]}
        assert assigned == {1: None, 2: str(author.id), 3: None}

    def test_owner_reorders_and_reassigns(self, client, book, owner, author, auth_headers):
        p1, p2, p3 = book.pages
        entries = [
            {"page_id": str(p3.id), "user_id": str(author.id)},
            {"page_id": str(p1.id)},
            {"page_id": str(p2.id)},
        ]
        res = client.put(
            f"/api/books/{book.id}/assignments",
            json={"entries": entries},
            headers=auth_headers(owner),
        )

        assert res.status_code == 200
        pages = res.json()["pages"]
        assert [p["id"] for p in pages] == [str(p3.id), str(p1.id), str(p2.id)]
        assert [p["page_number"] for p in pages] == [1, 2, 3]
        assert pages[0]["elements"][0]["text"] == "Page 3"

        view = client.get(f"/api/books/{book.id}", headers=auth_headers(author)).json()
        assert [p["page_number"] for p in view["book"]["pages"]] == [1]

    def test_author_cannot_reassign(self, client, book, author, auth_headers):
        entries = [{"page_id": str(p.id)} for p in book.pages]
        res = client.put(
            f"/api/books/{book.id}/assignments",
            json={"entries": entries},
            headers=auth_headers(author),
        )
        assert res.status_code == 403
        assert res.json()["detail"]["code"] == "forbidden"

    def test_incomplete_entries(self, client, book, owner, auth_headers):
        entries = [{"page_id": str(book.pages[0].id)}]
        res = client.put(
            f"/api/books/{book.id}/assignments",
            json={"entries": entries},
            headers=auth_headers(owner),
        )
        assert res.status_code == 400


class TestCollaborators:
    def test_roster(self, client, book, owner, author, auth_headers):
        res = client.get(f"/api/books/{book.id}/roster", headers=auth_headers(owner))
        assert [f["user_id"] for f in res.json()] == [str(author.id)]

    def test_owner_adds_collaborator(self, client, book, owner, outsider, auth_headers):
        res = client.put(
            f"/api/books/{book.id}/collaborators/{outsider.id}",
            json={"book_role": "author", "page_access_level": "all_pages"},
            headers=auth_headers(owner),
        )
        assert res.status_code == 200
        assert res.json()["page_access_level"] == "all_pages"

        view = client.get(f"/api/books/{book.id}", headers=auth_headers(outsider)).json()
        assert len(view["book"]["pages"]) == 3
        assert view["capabilities"]["editable_pages"] == []

    def test_author_cannot_add_collaborator(self, client, book, author, outsider, auth_headers):
        res = client.put(
            f"/api/books/{book.id}/collaborators/{outsider.id}",
            json={},
            headers=auth_headers(author),
        )
        assert res.status_code == 403


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
