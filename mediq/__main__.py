"""Run the API server: python -m mediq"""
import uvicorn

from mediq import config


def main():
    uvicorn.run(
        "mediq.api_server:app",
        host=config.API_HOST,
        port=config.API_PORT,
        log_level=config.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
