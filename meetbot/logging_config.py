"""Process-wide logging setup."""
import logging


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_meetbot", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._meetbot = True
        root.addHandler(handler)

    # httpx logs every request URL at INFO, which includes the token endpoint.
    logging.getLogger("httpx").setLevel(logging.WARNING)
