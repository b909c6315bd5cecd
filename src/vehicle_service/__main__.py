import uvicorn

from .config.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "vehicle_service.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,  # logging is installed by the app lifespan
    )


if __name__ == "__main__":
    main()
