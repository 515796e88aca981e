"""Run the EcoSort API with uvicorn: ``python -m ecosort``."""

from __future__ import annotations

import uvicorn

from ecosort.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("ecosort.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
