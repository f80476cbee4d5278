"""
Main entry point: python -m sommstats
"""
import uvicorn

from config.settings import settings


def main():
    uvicorn.run(
        "sommstats.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
