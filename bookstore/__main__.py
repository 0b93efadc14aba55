import uvicorn

from .config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("bookstore.app:app", host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
