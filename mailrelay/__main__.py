"""Run the relay server: ``python -m mailrelay``."""

import logging

import uvicorn

from .config import load_config
from .logging_config import configure_logging
from .main import create_app


def main() -> None:
    config = load_config()
    configure_logging(config.log_level, json_format=config.log_json)
    logging.getLogger("mailrelay").info("Email server starting on port %s: %s", config.port, config.describe())
    uvicorn.run(create_app(config), host="0.0.0.0", port=config.port, log_config=None)


if __name__ == "__main__":
    main()
