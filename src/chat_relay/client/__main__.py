"""Terminal chat client.

    python -m chat_relay.client --url http://localhost:3000 --name alice

Type a line to send it. Commands: /name <new name>, /retry [temp id],
/discard [temp id], /reconnect, /quit. Without a temp id, /retry and
/discard act on the most recent failed message.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any

from chat_relay.client.client import ChatClient
from chat_relay.client.config import ClientSettings
from chat_relay.client.views import DeliveryStatus, MessageView, Notification, StatusIndicator


def _render(kind: str, payload: Any) -> None:
    if kind == "message" and isinstance(payload, MessageView):
        if payload.status in (DeliveryStatus.RECEIVED, DeliveryStatus.DELIVERED):
            print(f"[{payload.created_at.astimezone():%H:%M}] {payload.sender}: {payload.text}")
    elif kind == "updated" and isinstance(payload, MessageView):
        if payload.status == DeliveryStatus.DELIVERED:
            print(f"[{payload.created_at.astimezone():%H:%M}] {payload.sender}: {payload.text}")
        elif payload.status == DeliveryStatus.FAILED:
            hint = " (/retry or /discard)" if payload.can_retry else " (/discard)"
            print(f"  ! [{payload.id}] {payload.text!r} {payload.label}{hint}")
    elif kind == "notification" and isinstance(payload, Notification):
        print(f"{'!' if payload.is_error else '*'} {payload.text}")
    elif kind == "status" and isinstance(payload, StatusIndicator):
        print(f"-- {payload.text}")
    elif kind == "typing" and payload:
        print(f"   {payload}")


async def run(url: str, name: str | None) -> None:
    settings = ClientSettings(SERVER_URL=url) if url else ClientSettings()
    client = ChatClient(settings, username=name)
    client.view.listener = _render

    async with client:
        if not client.view.identity:
            print("Tip: set a name with /name <name>")
        while True:
            try:
                line = await asyncio.to_thread(input)
            except EOFError:
                break
            command, _, arg = line.partition(" ")
            arg = arg.strip() or None

            if command == "/quit":
                break
            if command == "/name":
                client.set_username(arg or "")
            elif command == "/retry":
                if not await client.retry(arg):
                    print("Nothing to retry")
            elif command == "/discard":
                if not client.discard(arg):
                    print("Nothing to discard")
            elif command == "/reconnect":
                client.reconnect()
            else:
                await client.send(line)


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat relay terminal client")
    parser.add_argument("--url", default="", help="Server base URL, e.g. http://localhost:3000")
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run(args.url, args.name))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
