import logging
import secrets

from ..config import settings


def generate_urlsafe() -> str:
    return secrets.token_urlsafe(32)


def setup_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def silence_http_logging():
    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


def format_content_types(types: list[str]) -> str:
    if not types:
        return "content"
    if len(types) == 1:
        return types[0]
    if len(types) == 2:
        return f"{types[0]} and {types[1]}"
    return ", ".join(types[:-1]) + ", and " + types[-1]
