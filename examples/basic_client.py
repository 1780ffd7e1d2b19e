import asyncio
import os
from dataclasses import dataclass

from pypusher import PusherClient, PusherOptions, configure_logging


@dataclass
class Member:
    name: str


class EnvAuthorizer:
    """Reads a pre-signed token from the environment, for local testing only."""

    def authorize(self, channel_name, socket_id):
        return {
            "auth": os.environ["PUSHER_AUTH_TOKEN"],
            "channel_data": os.environ.get("PUSHER_CHANNEL_DATA"),
        }


async def main():
    options = PusherOptions.from_env()
    options.authorizer = EnvAuthorizer()
    configure_logging(options.logging)

    client = PusherClient(os.environ["PUSHER_APP_KEY"], options)

    @client.on_error
    def on_error(error):
        print(f"Error: {error}")

    orders = await client.subscribe("orders")

    @orders.bind("order-created")
    async def on_order(event):
        print(f"Order: {event.data}")

    await client.connect()

    room = await client.subscribe_presence("presence-lobby", Member)
    room.on_member_added(lambda event: print(f"{event.data.name} joined"))

    await room.wait_subscribed(timeout=10)
    await room.trigger("client-hello", {"text": "Hello, world!"})

    await asyncio.sleep(10)
    await client.disconnect()


asyncio.run(main())
