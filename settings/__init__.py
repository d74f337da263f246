import os
from typing import TYPE_CHECKING, cast

from pydantic_settings import BaseSettings

ENV_VARIABLE = "SELFECHO_ENV"


def get_settings() -> BaseSettings:
    """Test settings when SELFECHO_ENV=test (no .env file, throwaway secret), else the environment's."""
    if os.getenv(ENV_VARIABLE, "").strip().lower() == "test":
        from .test_settings import TestSettings

        return TestSettings()

    from .settings import Settings

    return Settings()


if TYPE_CHECKING:
    from .settings import Settings

    settings = cast(Settings, get_settings())
else:
    settings = get_settings()
