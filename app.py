import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request

from api.gateway import Gateway
from api.routes import router
from infrastructure.config import BASE_DIR

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def create_app(base_path: Path = BASE_DIR, gateway: Gateway | None = None) -> FastAPI:
    gateway = gateway or Gateway.from_base_path(base_path)

    app = FastAPI(title="Store Assistant")
    app.state.gateway = gateway
    app.include_router(router, prefix="/api")

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
        return gateway.error_response(exc)

    return app


def main() -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    gateway = Gateway.from_base_path(BASE_DIR)
    logging.getLogger().setLevel(gateway.log_level)
    uvicorn.run(create_app(gateway=gateway), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
