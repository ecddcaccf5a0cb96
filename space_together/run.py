import sys

import uvicorn
from dotenv import load_dotenv

from space_together import create_app
from space_together.core.config import settings
from space_together.core.errors import ConfigMissing, UpstreamUnavailable
from space_together.core.logging import logger

load_dotenv()

# Create the FastAPI app using the create_app function
app = create_app()


def main() -> None:
    try:
        settings.validate_startup()
    except ConfigMissing as e:
        logger.critical(f"Cannot start: {e.message}")
        sys.exit(1)

    config = uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
    server = uvicorn.Server(config)
    try:
        server.run()
    except (ConfigMissing, UpstreamUnavailable) as e:
        logger.critical(f"Startup failed: {e.message}")
        sys.exit(1)
    if not server.started:
        # startup hook errors are logged by uvicorn and leave the server unstarted
        sys.exit(1)


if __name__ == "__main__":
    main()
