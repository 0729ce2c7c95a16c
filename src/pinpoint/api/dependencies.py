"""Dependency injection — shared services and configuration."""

from __future__ import annotations

import functools
from typing import AsyncIterator

from fastapi import Depends

from pinpoint.core.config import Settings, get_settings
from pinpoint.github.client import GitHubClient


@functools.lru_cache
def get_app_settings() -> Settings:
    """Cached application settings (singleton)."""
    return get_settings()


async def get_github_client(
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[GitHubClient]:
    """A GitHub client for the duration of one request."""
    client = GitHubClient(settings)
    try:
        yield client
    finally:
        await client.close()
