import uvicorn

from .config import Settings, configure_logging
from .main import create_app


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings)
    uvicorn.run(create_app(settings), host=settings.listen_host, port=settings.listen_port)


if __name__ == "__main__":
    main()
