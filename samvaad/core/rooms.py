# samvaad/core/rooms.py

ROOM_SEPARATOR = "_"


def derive_room_id(user_a: str, user_b: str) -> str:
    """
    Derive the room id for a one-to-one conversation.

    Both participants compute the same id on their own: the two identifiers
    are sorted and joined, so ``derive_room_id(a, b) == derive_room_id(b, a)``.

    Raises:
        ValueError: if either identifier is empty
    """
    a, b = user_a.strip(), user_b.strip()
    if not a or not b:
        raise ValueError("Both participant ids are required")
    return ROOM_SEPARATOR.join(sorted((a, b)))
