# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime settings, read from INTEROP_* environment variables.
    """

    model_config = SettingsConfigDict(env_prefix="INTEROP_", extra="ignore")

    db_path: str = ":memory:"
    cache_size: int = Field(default=5, ge=1)
    workers: int = Field(default=4, ge=1)
    shutdown_grace: float = Field(default=10.0, ge=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls()
