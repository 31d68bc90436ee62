import logging
from telegram import Update, BotCommand
from telegram.error import BadRequest
from telegram.ext import Application, ApplicationBuilder, CommandHandler, MessageHandler, filters, ContextTypes

from services.challenge_service import ChallengeService
from services.dispatcher import ChallengeDispatcher, ask_language, detect_language, render
from services.user_registry import UserRegistry

logger = logging.getLogger(__name__)

async def post_init(application: Application):
    """Sets the bot commands in the menu."""
    commands = [
        BotCommand("start", "Start & subscribe to daily challenges"),
        BotCommand("language", "Pick a language and get a challenge"),
        BotCommand("hint", "Get a hint for your challenge"),
        BotCommand("stats", "Check score & streak"),
        BotCommand("help", "Get help"),
        BotCommand("stop", "Pause daily challenges")
    ]
    await application.bot.set_my_commands(commands)

def _services(context: ContextTypes.DEFAULT_TYPE):
    return (context.bot_data["challenge_service"],
            context.bot_data["dispatcher"],
            context.bot_data["registry"])

async def reply(update: Update, text: str):
    """Replies with Markdown, falling back to plain text if Telegram rejects the markup."""
    try:
        await update.message.reply_text(text, parse_mode='Markdown')
    except BadRequest as e:
        logger.warning(f"Markdown reply rejected ({e}), sending plain text")
        await update.message.reply_text(text)

async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _, _, registry = _services(context)
    user = update.effective_user
    registry.add_user(str(user.id))

    welcome_text = (
        f"🚀 **Welcome to DevChallenge Bot, {user.first_name}!**\n\n"
        "I send you **one short coding challenge** at 8 AM and 6 PM (UTC).\n\n"
        "📖 **How it works:**\n"
        "1. Tell me a language (e.g. `python`, `rust`).\n"
        "2. Reply with your answer. You get 2 attempts.\n"
        "3. Say **'hint'** if you are stuck.\n"
        "4. Solve challenges to grow your score and streak!\n\n"
    )
    await reply(update, welcome_text + ask_language())

async def stop_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _, _, registry = _services(context)
    registry.remove_user(str(update.effective_user.id))
    await update.message.reply_text("⏸️ Daily challenges paused. Use /start to resume.")

async def stats_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    challenge_service, _, registry = _services(context)
    user_id = str(update.effective_user.id)
    state = challenge_service.store.get(user_id)

    # 1 fire per 3 days of streak, max 5
    fire_count = min(5, state.streak // 3) + 1 if state.streak > 0 else 0
    fires = "🔥" * fire_count
    subscribed = "✅" if registry.is_registered(user_id) else "⏸️"

    text = (
        f"📊 **Your Progress Stats**\n\n"
        f"🏆 **Score:** {state.score}\n"
        f"🔥 **Streak:** {state.streak} {fires}\n"
        f"──────────────────\n"
        f"💻 **Language:** {state.preferred_language}\n"
        f"📅 **Daily challenges:** {subscribed}\n"
    )
    await reply(update, text)

async def hint_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    challenge_service, _, _ = _services(context)
    result = await challenge_service.get_hint(str(update.effective_user.id))
    await reply(update, render(result))

async def language_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    challenge_service, _, _ = _services(context)
    language = detect_language(" ".join(context.args or []))
    if not language:
        await reply(update, ask_language())
        return

    await update.message.reply_chat_action(action="typing")
    result = await challenge_service.start_challenge(str(update.effective_user.id), language)
    await reply(update, render(result))

async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    text = (
        "/start - Subscribe to daily challenges\n"
        "/language <name> - Get a challenge in a language\n"
        "/hint - Get a hint\n"
        "/stats - View your score & streak\n"
        "/stop - Pause daily messages\n\n"
        "Any other message is treated as your answer."
    )
    await update.message.reply_text(text)

async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE):
    _, dispatcher, _ = _services(context)
    user_id = str(update.effective_user.id)

    await update.message.reply_chat_action(action="typing")
    response = await dispatcher.handle_message(user_id, update.message.text)
    await reply(update, response)

def create_app(token: str, challenge_service: ChallengeService, dispatcher: ChallengeDispatcher,
               registry: UserRegistry) -> Application:
    if not token:
        raise ValueError("TELEGRAM_BOT_TOKEN not found in environment variables.")

    app = ApplicationBuilder().token(token).post_init(post_init).build()
    app.bot_data["challenge_service"] = challenge_service
    app.bot_data["dispatcher"] = dispatcher
    app.bot_data["registry"] = registry

    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("stop", stop_command))
    app.add_handler(CommandHandler("stats", stats_command))
    app.add_handler(CommandHandler("hint", hint_command))
    app.add_handler(CommandHandler("language", language_command))
    app.add_handler(CommandHandler("help", help_command))

    app.add_handler(MessageHandler(filters.TEXT & (~filters.COMMAND), handle_message))

    return app
