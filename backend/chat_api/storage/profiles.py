"""
Display profiles for the other participant in room listings.
Lookups are best effort: any failure means "no profile".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from chat_api.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    id: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileDirectory(Protocol):
    def lookup(self, user_id: str) -> Profile | None:
        ...


class NullProfileDirectory:
    def lookup(self, user_id: str) -> Profile | None:
        return None


class RemoteProfileDirectory:
    """Reads the ``profiles`` table through a PostgREST-style endpoint."""

    def __init__(self, url: str, api_key: str = "", timeout: float = 5.0):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def lookup(self, user_id: str) -> Profile | None:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        params = {"id": f"eq.{user_id}", "select": "id,name,avatar_url"}
        try:
            resp = requests.get(self.url, params=params, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            rows = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Profile lookup failed for %s: %s", user_id, e)
            return None

        if not rows:
            return None
        row = rows[0]
        return Profile(id=str(row.get("id", user_id)), name=row.get("name"), avatar_url=row.get("avatar_url"))


_directory: ProfileDirectory | None = None


def get_profile_directory() -> ProfileDirectory:
    global _directory
    if _directory is None:
        if settings.profiles_url:
            _directory = RemoteProfileDirectory(settings.profiles_url, settings.profiles_api_key)
        else:
            _directory = NullProfileDirectory()
    return _directory
