# app.py - process entrypoint (run directly, or `uvicorn app:app`)
import structlog
import uvicorn

from api.main import create_app
from config import Settings

settings = Settings.from_env()
app = create_app(settings)

logger = structlog.get_logger("app")


if __name__ == "__main__":
    logger.info(
        "server_starting",
        port=settings.port,
        url=f"http://localhost:{settings.port}",
        environment=settings.environment,
    )
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)
