"""
Tests for board and list endpoints.

Covers board creation and settings, the owner-or-member access rule,
membership invitations, cascading deletes and list lifecycle.
"""

from config import get_settings


class TestBoardEndpoints:
    def test_create_board_makes_owner_a_member(self, client, alice):
        response = client.post(
            "/boards",
            json={"title": "  Roadmap  ", "description": "Q3 plans"},
            headers=alice.headers,
        )

        assert response.status_code == 201
        board = response.json()
        assert board["title"] == "Roadmap"
        assert board["background"] == "#0079bf"
        assert board["owner"] == {"id": alice.id, "username": "alice", "avatar": "https://avatars.example.com/alice.png"}
        assert [member["id"] for member in board["members"]] == [alice.id]

    def test_board_summaries_never_expose_credentials(self, client, alice, board_factory):
        board = board_factory(alice, {"L": ["A"]})

        body = client.get(f"/boards/{board.id}", headers=alice.headers).json()

        assert "hashed_password" not in str(body)
        assert "email" not in body["board"]["owner"]

    def test_title_bounds(self, client, alice):
        assert client.post("/boards", json={"title": ""}, headers=alice.headers).status_code == 400
        assert client.post("/boards", json={"title": "x" * 101}, headers=alice.headers).status_code == 400
        assert client.post("/boards", json={"title": "ok", "description": "x" * 501}, headers=alice.headers).status_code == 400

    def test_list_boards_includes_shared_boards(self, client, alice, bob, mallory, board_factory):
        mine = board_factory(alice, {})
        shared = board_factory(bob, {})
        board_factory(mallory, {})
        client.post(f"/boards/{shared.id}/members", json={"email": alice.email}, headers=bob.headers)

        response = client.get("/boards", headers=alice.headers)

        assert response.status_code == 200
        assert sorted(board["id"] for board in response.json()) == sorted([mine.id, shared.id])

    def test_get_board_returns_ordered_aggregate(self, client, alice, board_factory):
        board = board_factory(alice, {"Todo": ["A", "B"], "Doing": [], "Done": ["C"]})

        response = client.get(f"/boards/{board.id}", headers=alice.headers)

        assert response.status_code == 200
        body = response.json()
        assert body["board"]["id"] == board.id
        assert [(item["title"], item["position"]) for item in body["lists"]] == [("Todo", 0), ("Doing", 1), ("Done", 2)]
        assert body["lists"][0]["card_ids"] == [board.cards["A"], board.cards["B"]]
        assert body["lists"][2]["cards"][0]["list_id"] == board.lists["Done"]

    def test_update_board_settings(self, client, alice, bob, board_factory):
        board = board_factory(alice, {})
        client.post(f"/boards/{board.id}/members", json={"email": bob.email}, headers=alice.headers)

        response = client.put(
            f"/boards/{board.id}",
            json={"title": "Renamed", "background": "#519839"},
            headers=bob.headers,
        )

        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        assert response.json()["background"] == "#519839"

    def test_missing_board_is_not_found(self, client, alice):
        assert client.get("/boards/12345", headers=alice.headers).status_code == 404
        assert client.put("/boards/12345", json={"title": "x"}, headers=alice.headers).status_code == 404

    def test_outsider_cannot_read_or_change_board(self, client, alice, mallory, board_factory):
        board = board_factory(alice, {"L": []})

        assert client.get(f"/boards/{board.id}", headers=mallory.headers).status_code == 403
        assert client.put(f"/boards/{board.id}", json={"title": "x"}, headers=mallory.headers).status_code == 403
        assert client.post(f"/boards/{board.id}/lists", json={"title": "x"}, headers=mallory.headers).status_code == 403
        assert client.get(f"/boards/{board.id}", headers=alice.headers).json()["board"]["title"] == "Sprint"


class TestBoardDeletion:
    def test_owner_deletes_board_and_children(self, client, alice, board_factory):
        board = board_factory(alice, {"L1": ["A", "B"], "L2": ["C"]})
        client.post(f"/cards/{board.cards['A']}/comments", json={"text": "note"}, headers=alice.headers)

        response = client.delete(f"/boards/{board.id}", headers=alice.headers)

        assert response.status_code == 200
        assert client.get(f"/boards/{board.id}", headers=alice.headers).status_code == 404
        assert client.put(f"/lists/{board.lists['L1']}", json={"title": "x"}, headers=alice.headers).status_code == 404
        assert client.put(f"/cards/{board.cards['C']}", json={"title": "x"}, headers=alice.headers).status_code == 404

    def test_member_cannot_delete_board(self, client, alice, bob, board_factory):
        board = board_factory(alice, {})
        client.post(f"/boards/{board.id}/members", json={"email": bob.email}, headers=alice.headers)

        response = client.delete(f"/boards/{board.id}", headers=bob.headers)

        assert response.status_code == 403
        assert response.json() == {"message": "Only the owner can delete this board"}
        assert client.get(f"/boards/{board.id}", headers=alice.headers).status_code == 200


class TestMembers:
    def test_add_member_by_email(self, client, alice, bob, board_factory):
        board = board_factory(alice, {"L": ["A"]})

        response = client.post(f"/boards/{board.id}/members", json={"email": "BOB@example.com"}, headers=alice.headers)

        assert response.status_code == 200
        assert [member["username"] for member in response.json()["members"]] == ["alice", "bob"]
        # new member may now act on the board
        created = client.post(f"/lists/{board.lists['L']}/cards", json={"title": "B"}, headers=bob.headers)
        assert created.status_code == 201
        assert created.json()["position"] == 1

    def test_unknown_invitee_is_not_found(self, client, alice, board_factory):
        board = board_factory(alice, {})

        response = client.post(f"/boards/{board.id}/members", json={"email": "nobody@example.com"}, headers=alice.headers)

        assert response.status_code == 404
        assert response.json() == {"message": "User not found"}

    def test_duplicate_member_is_a_conflict(self, client, alice, bob, board_factory):
        board = board_factory(alice, {})
        client.post(f"/boards/{board.id}/members", json={"email": bob.email}, headers=alice.headers)

        again = client.post(f"/boards/{board.id}/members", json={"email": bob.email}, headers=alice.headers)
        owner = client.post(f"/boards/{board.id}/members", json={"email": alice.email}, headers=alice.headers)

        assert again.status_code == 409
        assert owner.status_code == 409

    def test_invalid_email_is_rejected(self, client, alice, board_factory):
        board = board_factory(alice, {})

        response = client.post(f"/boards/{board.id}/members", json={"email": "not-an-email"}, headers=alice.headers)

        assert response.status_code == 400


class TestLists:
    def test_lists_are_appended_in_order(self, client, alice, board_factory):
        board = board_factory(alice, {})

        positions = [
            client.post(f"/boards/{board.id}/lists", json={"title": title}, headers=alice.headers).json()["position"]
            for title in ("Todo", "Doing", "Done")
        ]

        assert positions == [0, 1, 2]

    def test_rename_list(self, client, alice, board_factory):
        board = board_factory(alice, {"Todo": []})

        response = client.put(f"/lists/{board.lists['Todo']}", json={"title": "Backlog"}, headers=alice.headers)

        assert response.status_code == 200
        assert response.json()["title"] == "Backlog"
        assert response.json()["position"] == 0

    def test_delete_list_removes_cards_and_leaves_sibling_positions(self, client, alice, board_factory):
        board = board_factory(alice, {"Todo": ["A"], "Doing": ["B", "C"], "Done": ["D"]})

        response = client.delete(f"/lists/{board.lists['Doing']}", headers=alice.headers)

        assert response.status_code == 200
        assert response.json() == {"message": "List deleted successfully", "list_id": board.lists["Doing"]}
        lists = client.get(f"/boards/{board.id}", headers=alice.headers).json()["lists"]
        assert [(item["title"], item["position"]) for item in lists] == [("Todo", 0), ("Done", 2)]
        assert client.put(f"/cards/{board.cards['B']}", json={"title": "x"}, headers=alice.headers).status_code == 404

        # the next list still goes after the highest position
        created = client.post(f"/boards/{board.id}/lists", json={"title": "Later"}, headers=alice.headers)
        assert created.json()["position"] == 3

    def test_outsider_cannot_change_lists(self, client, alice, mallory, board_factory):
        board = board_factory(alice, {"Todo": ["A"]})
        list_id = board.lists["Todo"]

        assert client.put(f"/lists/{list_id}", json={"title": "x"}, headers=mallory.headers).status_code == 403
        assert client.delete(f"/lists/{list_id}", headers=mallory.headers).status_code == 403
        assert client.put(f"/lists/{list_id}", json={"title": "x"}, headers=alice.headers).json()["title"] == "x"

    def test_unknown_list_is_not_found(self, client, alice):
        assert client.delete("/lists/404", headers=alice.headers).status_code == 404


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_app_title_comes_from_settings(client):
    assert client.get("/openapi.json").json()["info"]["title"] == get_settings().app_name
