import argparse
import logging
from typing import Optional

import uvicorn

from .config import load_settings
from .logging_config import configure_logging
from .main import create_app

def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="bucketgate", description="bucketgate object storage gateway")
    parser.add_argument("--host", default=None, help="Host address to bind to (overrides HOST)")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (overrides PORT)")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides LOG_LEVEL)",
    )
    parser.add_argument("--log-format", default=None, choices=["text", "json"], help="Log format (overrides LOG_FORMAT)")
    return parser.parse_args(argv)

def main(argv: Optional[list] = None) -> None:
    args = parse_args(argv)
    settings = load_settings()
    overrides = {
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    configure_logging(settings.log_level, settings.log_format)
    logging.getLogger("bucketgate").info("Starting bucketgate on %s:%d", settings.host, settings.port)

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)

if __name__ == "__main__":
    main()
