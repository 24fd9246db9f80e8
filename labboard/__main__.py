"""Run LabBoard server: python3 -m labboard"""

import uvicorn

from labboard.config import settings


def main() -> None:
    uvicorn.run("labboard.api.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
