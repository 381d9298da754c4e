import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once: a single stdout handler with a timestamped format.
    Calling it again (tests build several apps) replaces the handler instead of stacking one more.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    for handler in list(root.handlers):
        if getattr(handler, "_bookqa", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._bookqa = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # uvicorn access logs are noisy for a polling dashboard
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
