import uvicorn

from infrastructure.services import get_settings
from server import server

server_app = server.handler


def main():
    """Serve the API; the lifespan starts the reminder engine."""
    settings = get_settings()
    host, _, port = settings.server.BACKEND_URL.split("://", 1)[-1].rstrip("/").partition(":")
    uvicorn.run(server_app, host=host or "127.0.0.1", port=int(port or 8000))


if __name__ == "__main__":
    main()
