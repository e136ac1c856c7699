"""ASGI entrypoint: ``uvicorn api.main:app``"""

import uvicorn

from api.app import create_app
from api.core.config import get_settings

app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
