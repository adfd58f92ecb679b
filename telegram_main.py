import logging

from config import build_store, load_settings
from interfaces.telegram.handlers import create_telegram_bot


def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not settings.telegram_bot_token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN environment variable is not set.")

    store = build_store(settings)
    logging.getLogger("telegram_main").info("Using %s storage", settings.db_backend)

    bot = create_telegram_bot(settings.telegram_bot_token, store)
    bot.infinity_polling()


if __name__ == "__main__":
    main()
