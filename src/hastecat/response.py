"""
Replies written back to TCP clients.
"""


def compose_response(base_url: str, key: str) -> bytes:
    """
    Join the haste-server URL and a paste key into the line sent to the client.

    The key is used as returned by the haste-server, without escaping.

    >>> compose_response("https://example.test", "abcd")
    b'https://example.test/abcd\\n'
    """
    return f"{base_url}/{key}\n".encode("utf-8")


def rejection_message(limit: int) -> bytes:
    """Text sent to clients whose payload exceeded ``limit`` bytes."""
    return f"Pastes may not exceed {limit} bytes of data".encode("utf-8")
