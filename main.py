import os
from dotenv import load_dotenv
# Load environment variables before any other imports
load_dotenv()

import logging
from contextlib import asynccontextmanager

import uvicorn

import config
from api import create_api
from llm.generator import ChallengeGenerator
from scheduler import DailyChallengeScheduler
from services.challenge_service import ChallengeService
from services.delivery_service import LogDeliverySink, TelegramDeliverySink
from services.dispatcher import ChallengeDispatcher
from services.state_store import StateStore
from services.user_registry import UserRegistry
from telegram_bot import create_app, post_init

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, config.LOG_LEVEL, logging.INFO)
)
logger = logging.getLogger(__name__)

def build_app():
    # 1. Core state and services
    store = StateStore()
    registry = UserRegistry()
    generator = ChallengeGenerator(model=config.OPENAI_MODEL)
    challenge_service = ChallengeService(store, generator, generation_timeout=config.GENERATION_TIMEOUT_SECONDS)
    dispatcher = ChallengeDispatcher(challenge_service)

    # 2. Telegram bot (optional) doubles as the delivery channel
    telegram_app = None
    if config.TELEGRAM_BOT_TOKEN:
        telegram_app = create_app(config.TELEGRAM_BOT_TOKEN, challenge_service, dispatcher, registry)
        sink = TelegramDeliverySink(telegram_app.bot)
    else:
        logger.warning("TELEGRAM_BOT_TOKEN is not set. Running HTTP-only; scheduled messages are only logged.")
        sink = LogDeliverySink()

    # 3. Scheduler pushes challenges at 08:00 and 18:00 UTC
    scheduler = DailyChallengeScheduler(challenge_service, registry, sink, send_delay=config.SEND_DELAY_SECONDS)

    @asynccontextmanager
    async def lifespan(app):
        scheduler.start()
        if telegram_app:
            await telegram_app.initialize()
            await post_init(telegram_app)
            await telegram_app.start()
            await telegram_app.updater.start_polling()
            logger.info("Bot is polling...")
        try:
            yield
        finally:
            if telegram_app:
                await telegram_app.updater.stop()
                await telegram_app.stop()
                await telegram_app.shutdown()
            scheduler.shutdown()

    return create_api(dispatcher, registry, scheduler, lifespan=lifespan)

def main():
    app = build_app()
    logger.info(f"DevChallenge Bot running on port {config.PORT}")
    uvicorn.run(app, host=config.API_HOST, port=config.PORT)

if __name__ == "__main__":
    # Ensure env vars are set
    if not os.getenv("OPENAI_API_KEY"):
        print("Error: OPENAI_API_KEY is not set.")
    else:
        main()
