import uvicorn
import os
from logging_config import setup_logging

# Setup logging before importing app
log_level = os.getenv("LOG_LEVEL", "DEBUG")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)

from logging_config import get_logger

logger = get_logger(__name__)


def main():
    """Run the API with uvicorn. Redis is connected in the app lifespan, once per worker."""
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    reload = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")
    logger.info(f"Starting pairchat server on {host}:{port} (reload={reload})")
    uvicorn.run("app:app", host=host, port=port, reload=reload, log_config=None)


if __name__ == "__main__":
    main()
