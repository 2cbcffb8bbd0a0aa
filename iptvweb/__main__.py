import uvicorn

from iptvweb.core.config import Settings, configure_logging


def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run("iptvweb.api.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
