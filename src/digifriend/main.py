"""Digital Friend entry point."""

import logging
import sys

from dotenv import find_dotenv, load_dotenv

from .logging import configure_logger


def main() -> None:
    """Main entry point."""
    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_logger()

    from .telegram import TelegramBot

    try:
        bot = TelegramBot()
    except ValueError as e:
        print(f"❌ Error: {e}")
        sys.exit(1)

    bot.run()


if __name__ == "__main__":
    main()
