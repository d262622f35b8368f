#!/usr/bin/env python3
"""
hastecat client example

Sends stdin to a hastecat server the way `nc host port` does: write
everything, never signal the end, and wait for the server to answer.

    echo "hello" | python examples/paste_client.py localhost 9999
"""

import argparse
import socket
import sys


def main():
    parser = argparse.ArgumentParser(description="Send stdin to a hastecat server")
    parser.add_argument("host", help="Server host")
    parser.add_argument("port", type=int, help="Server port")
    parser.add_argument("--timeout", type=float, default=30.0,
                        help="Seconds to wait for the reply (default: 30)")
    args = parser.parse_args()

    data = sys.stdin.buffer.read()

    with socket.create_connection((args.host, args.port), timeout=args.timeout) as sock:
        sock.sendall(data)

        # The server replies after it sees no data for a couple of seconds
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)

    reply = b"".join(chunks)
    if not reply:
        print("Server closed the connection without a reply", file=sys.stderr)
        return 1

    sys.stdout.buffer.write(reply)
    return 0


if __name__ == "__main__":
    sys.exit(main())
