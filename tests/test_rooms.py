"""Tests for room id derivation."""

import pytest

from samvaad.core.rooms import derive_room_id


@pytest.mark.parametrize(
    "a, b",
    [("A", "B"), ("user_abc_123", "vol_9"), ("zed", "amy"), ("same", "same")],
)
def test_derivation_is_commutative(a, b):
    assert derive_room_id(a, b) == derive_room_id(b, a)


def test_sorted_and_joined():
    assert derive_room_id("B", "A") == "A_B"


def test_surrounding_whitespace_ignored():
    assert derive_room_id(" A ", "B") == "A_B"


@pytest.mark.parametrize("a, b", [("", "B"), ("A", "  ")])
def test_blank_participant_rejected(a, b):
    with pytest.raises(ValueError):
        derive_room_id(a, b)


def test_derive_endpoint(client):
    response = client.get("/rooms/derive", params={"a": "bob", "b": "alice"})
    assert response.status_code == 200
    assert response.json() == {"roomId": "alice_bob"}


def test_derive_endpoint_rejects_blank(client):
    response = client.get("/rooms/derive", params={"a": "bob", "b": " "})
    assert response.status_code == 400
