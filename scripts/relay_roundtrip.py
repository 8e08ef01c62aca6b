#!/usr/bin/env python
"""Relay roundtrip check: a listener and a sender connect as two users and exchange a message.
Usage: python scripts/relay_roundtrip.py <url> <sender_token> <receiver_token> <receiver_id>
"""
import asyncio
import sys

from draftio.client.relay import RelayClient


async def listener(url: str, token: str, done: asyncio.Event):
    relay = RelayClient(url)

    def on_message(payload):
        print("LISTENER RECV:", payload)
        done.set()

    relay.on("receive_message", on_message)
    relay.on("typing_indicator", lambda payload: print("LISTENER TYPING:", payload))
    connection = await relay.connect(token)
    print(f"LISTENER state -> {connection.state.value}")
    try:
        await asyncio.wait_for(done.wait(), timeout=10)
    finally:
        await relay.disconnect()


async def sender(url: str, token: str, receiver_id: str):
    relay = RelayClient(url)
    relay.on("message_sent", lambda payload: print("SENDER ECHO:", payload))
    relay.on("error", lambda payload: print("SENDER error:", payload))
    connection = await relay.connect(token)
    print(f"SENDER state -> {connection.state.value}")

    await relay.emit("typing_start", {"receiverId": receiver_id})
    await asyncio.sleep(0.5)
    await relay.emit("send_message", {"receiverId": receiver_id, "content": "Hello from relay_roundtrip"})
    print("SENDER sent message")

    # Give server time to process and deliver
    await asyncio.sleep(2)
    await relay.disconnect()


async def main():
    if len(sys.argv) < 5:
        print("Usage: python scripts/relay_roundtrip.py <url> <sender_token> <receiver_token> <receiver_id>")
        sys.exit(2)

    url, sender_token, receiver_token, receiver_id = sys.argv[1:5]
    done = asyncio.Event()

    # Start listener first, then sender
    listener_task = asyncio.create_task(listener(url, receiver_token, done))
    await asyncio.sleep(0.6)
    await sender(url, sender_token, receiver_id)

    try:
        await listener_task
    except asyncio.TimeoutError:
        print("LISTENER timed out waiting for the message")

    print("Done")


if __name__ == "__main__":
    asyncio.run(main())
