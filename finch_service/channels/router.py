import asyncio
from typing import Iterable, List

from finch_service.channels.types import IncomingMessage, OutgoingMessage
from finch_service.core.errors import FinchError
from finch_service.core.interfaces import Channel
from finch_service.core.logging import logger
from finch_service.protocol.service.chat_service import ChatService

APOLOGY = "Sorry, I couldn't process that message. Please try again in a moment."


class ChannelRouter:
    """Routes messages from every channel through the chat service and back."""

    def __init__(self, service: ChatService, channels: Iterable[Channel] = ()):
        self.service = service
        self.channels: List[Channel] = []
        for channel in channels:
            self.add_channel(channel)

    def add_channel(self, channel: Channel) -> None:
        async def _handler(message: IncomingMessage) -> None:
            await self.handle(channel, message)

        channel.on_message(_handler)
        self.channels.append(channel)
        logger.info(f"Channel registered: {channel.name} ({channel.id})")

    async def handle(self, channel: Channel, message: IncomingMessage) -> None:
        logger.info(f"[{channel.name}] message {message.id} from user_id={message.user_id}")
        try:
            await channel.send_typing(message.channel_id)
        except Exception:
            logger.exception(f"[{channel.name}] typing indicator failed")

        try:
            content = await self.service.reply(message.user_id, message.content)
        except FinchError as e:
            logger.error(f"[{channel.name}] turn failed for message {message.id}: {e}")
            content = APOLOGY

        await channel.send(
            OutgoingMessage(
                channel_id=message.channel_id,
                user_id=message.user_id,
                content=content,
                reply_to=message.id,
            )
        )

    async def start(self) -> None:
        await asyncio.gather(*(channel.start() for channel in self.channels))

    async def stop(self) -> None:
        results = await asyncio.gather(*(channel.stop() for channel in self.channels), return_exceptions=True)
        for channel, result in zip(self.channels, results):
            if isinstance(result, Exception):
                logger.error(f"[{channel.name}] failed to stop: {result}")
