import uvicorn

from devflow_api.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("devflow_api.main:app", host=settings.host, port=settings.port, workers=1)


if __name__ == "__main__":
    main()
