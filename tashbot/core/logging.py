import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(log_level: str = "INFO") -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)

    console = Console(
        force_terminal=True,
        width=120,
    )

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=True,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        tracebacks_width=120,
    )

    rich_handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%Y-%m-%d %H:%M:%S]",
        handlers=[rich_handler],
        force=True,
    )
    logger = logging.getLogger("Tashbot")
    logger.info("[bold green]✓[/bold green] Rich logging enabled", extra={"markup": True})

    if level == logging.DEBUG:
        logging.getLogger("Tashbot.IRC").setLevel(logging.DEBUG)
        logging.getLogger("aiohttp").setLevel(logging.INFO)
    else:
        logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logging.getLogger("asyncio").setLevel(logging.ERROR)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
