import uvicorn

from relay_api.settings import get_settings


def main() -> None:
    settings = get_settings()
    # relay_api.main owns the logging config
    uvicorn.run("relay_api.main:app", host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
