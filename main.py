import logging
import sys

import uvicorn

from pizzeria_voice.errors import ConfigError
from pizzeria_voice.settings import get_settings


def main() -> None:
    try:
        settings = get_settings()
    except ConfigError as e:
        logging.basicConfig(level=logging.ERROR, stream=sys.stderr)
        logging.getLogger("main").error(str(e))
        sys.exit(1)
    uvicorn.run(
        "pizzeria_voice.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
