import logging

from telegram import Bot
from telegram.error import BadRequest, TelegramError

logger = logging.getLogger(__name__)

class TelegramDeliverySink:
    """Pushes scheduled messages to a Telegram chat. Never raises."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def deliver(self, user_id: str, message: str) -> bool:
        try:
            try:
                await self.bot.send_message(chat_id=user_id, text=message, parse_mode='Markdown')
            except BadRequest as e:
                if "parse entities" not in str(e).lower():
                    raise
                await self.bot.send_message(chat_id=user_id, text=message)
            return True
        except TelegramError as e:
            # e.g. Forbidden when the user blocked the bot
            logger.warning(f"Failed to deliver message to {user_id}: {e}")
            return False

class LogDeliverySink:
    """Used when no Telegram token is configured."""

    async def deliver(self, user_id: str, message: str) -> bool:
        logger.info(f"Would deliver to {user_id}: {message[:50]}...")
        return True
