from __future__ import annotations

GAME_ACTIONS = ("in", "out")


def encode_claim_decision(request_id: str, approved: bool) -> str:
    """
    Encode an approve/deny button for a claim request.

    Format: claim:yes:{request_id} / claim:no:{request_id}
    """

    prefix = "yes" if approved else "no"
    return f"claim:{prefix}:{request_id}"


def parse_claim_decision(data: str) -> tuple[bool, str]:
    parts = data.split(":")
    if len(parts) != 3 or parts[0] != "claim" or parts[1] not in ("yes", "no") or not parts[2]:
        raise ValueError(f"Invalid claim decision callback data: {data}")

    return parts[1] == "yes", parts[2]


def encode_game_action(action: str, game_id: str) -> str:
    """
    Encode a quick join/leave button.

    Format: game:in:{game_id} / game:out:{game_id}
    """

    if action not in GAME_ACTIONS:
        raise ValueError(f"Unknown game action: {action}")
    return f"game:{action}:{game_id}"


def parse_game_action(data: str) -> tuple[str, str]:
    parts = data.split(":")
    if len(parts) != 3 or parts[0] != "game" or parts[1] not in GAME_ACTIONS or not parts[2]:
        raise ValueError(f"Invalid game action callback data: {data}")

    return parts[1], parts[2]
