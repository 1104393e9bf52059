import uvicorn

from tafara.app.main import app
from tafara.services.settings import get_settings


def main() -> None:
    settings = get_settings()
    ssl = {}
    if settings.ssl_certfile and settings.ssl_keyfile:
        ssl = {"ssl_certfile": settings.ssl_certfile, "ssl_keyfile": settings.ssl_keyfile}
    uvicorn.run(app, host=settings.host, port=settings.port, **ssl)


if __name__ == "__main__":
    main()
