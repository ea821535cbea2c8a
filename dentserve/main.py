import uvicorn

from dentserve.core.app_factory import create_app
from dentserve.core.config import settings

app = create_app()


def run() -> None:
    uvicorn.run("dentserve.main:app", host="0.0.0.0", port=settings.app.port)


if __name__ == "__main__":
    run()
