"""Test configuration and fixtures."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

import database
from main import app
from middleware.auth import create_access_token
from models import User
from realtime import manager


async def _insert_user(username: str, email: str) -> int:
    async with database.session_factory()() as db:
        user = User(username=username, email=email, hashed_password="not-used", avatar=f"https://avatars.example.com/{username}.png")
        db.add(user)
        await db.commit()
        return user.id


@pytest.fixture
def client(tmp_path) -> TestClient:
    """App client bound to a fresh SQLite database for each test."""
    database.configure_database(f"sqlite+aiosqlite:///{tmp_path / 'board.db'}")
    manager.active_connections.clear()
    with TestClient(app) as test_client:
        yield test_client
    manager.active_connections.clear()


@pytest.fixture
def make_user(client):
    def factory(username: str) -> SimpleNamespace:
        email = f"{username}@example.com"
        user_id = client.portal.call(_insert_user, username, email)
        token = create_access_token({"sub": user_id})
        return SimpleNamespace(
            id=user_id,
            username=username,
            email=email,
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )

    return factory


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def mallory(make_user):
    return make_user("mallory")


@pytest.fixture
def board_factory(client):
    """Create a board with the given lists, each filled with titled cards.

    ``board_factory(owner, {"Todo": ["A", "B"], "Done": []})`` returns
    ``SimpleNamespace(id=..., lists={"Todo": list_id, ...}, cards={"A": card_id, ...})``.
    """

    def factory(owner, layout: dict[str, list[str]]) -> SimpleNamespace:
        response = client.post("/boards", json={"title": "Sprint"}, headers=owner.headers)
        assert response.status_code == 201, response.text
        board_id = response.json()["id"]
        lists, cards = {}, {}
        for list_title, card_titles in layout.items():
            response = client.post(f"/boards/{board_id}/lists", json={"title": list_title}, headers=owner.headers)
            assert response.status_code == 201, response.text
            lists[list_title] = response.json()["id"]
            for card_title in card_titles:
                response = client.post(
                    f"/lists/{lists[list_title]}/cards",
                    json={"title": card_title},
                    headers=owner.headers,
                )
                assert response.status_code == 201, response.text
                cards[card_title] = response.json()["id"]
        return SimpleNamespace(id=board_id, lists=lists, cards=cards)

    return factory


@pytest.fixture
def layout(client):
    """Read a board back as ``{list title: [(card title, position), ...]}``."""

    def read(board_id: int, user) -> dict[str, list[tuple[str, int]]]:
        response = client.get(f"/boards/{board_id}", headers=user.headers)
        assert response.status_code == 200, response.text
        return {
            item["title"]: [(card["title"], card["position"]) for card in item["cards"]]
            for item in response.json()["lists"]
        }

    return read
