"""Entrypoint: run the skill registry server."""

import uvicorn

from skill_registry.api.app import create_app
from skill_registry.config.settings import Settings


def main() -> None:
    settings = Settings()
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
