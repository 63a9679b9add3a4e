"""Send one command to a running bridge and print the reply.

Mimics the watch companion app, which issues ``GET /<code>`` requests.

Usage:
    python tools/bridge_client.py <host> <port> <code> [--repeat N]

Toggle commands (a, s) are debounced by the bridge; use --repeat 3 to send
them the way the watch does.
"""

import argparse
import json
import socket
import sys

from sensor_bridge.protocol import Command


def send_command(host, port, code, timeout_s=5.0):
    """Return the ``name`` payload, or None if the bridge closed without a reply."""
    with socket.create_connection((host, port), timeout=timeout_s) as sock:
        sock.sendall(f"GET /{code} HTTP/1.1\r\nHost: {host}\r\n\r\n".encode("ascii"))
        chunks = []
        while True:
            chunk = sock.recv(1024)
            if not chunk:
                break
            chunks.append(chunk)

    body = b"".join(chunks).decode("utf-8").strip()
    if not body:
        return None
    return json.loads(body).get("name", "noname")


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("host")
    parser.add_argument("port", type=int)
    parser.add_argument("code", choices=[c.value for c in Command])
    parser.add_argument("--repeat", type=int, default=1)
    args = parser.parse_args()

    for i in range(args.repeat):
        try:
            name = send_command(args.host, args.port, args.code)
        except OSError as e:
            print(f"Server Error!!! ({e})")
            return 1
        print(f"[{i + 1}/{args.repeat}] {name if name is not None else '(no reply)'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
