"""
Content-key providers for packager encryption.

The packager asks a provider for the keys of one lesson. The provider in
use is chosen by VIDEO_KEY_PROVIDER (a dotted path), so a key-management
backed implementation can replace StaticKeyProvider without touching
the pipeline.
"""
import re
from dataclasses import dataclass
from typing import Protocol

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

_HEX128 = re.compile(r"^[0-9a-f]{32}$")

AUDIO_LABEL = "AUDIO"
VIDEO_LABEL = "VIDEO"


def normalize_hex(value: str, name: str) -> str:
    """Accept UUID-style or plain hex and return 32 lowercase hex chars."""
    cleaned = value.replace("-", "").strip().lower()
    if not _HEX128.match(cleaned):
        raise ImproperlyConfigured(f"{name} must be a 128-bit hex value")
    return cleaned


@dataclass(frozen=True)
class ContentKey:
    label: str
    key_id: str
    key: str

    def as_packager_arg(self) -> str:
        return f"label={self.label}:key_id={self.key_id}:key={self.key}"


class ContentKeyProvider(Protocol):
    def keys_for(self, lesson_id: str) -> list[ContentKey]:
        ...


class StaticKeyProvider:
    """
    Same key for every lesson and every stream, read from settings.
    Placeholder until a key-management service is wired in.
    """

    def __init__(self, key_id: str | None = None, key: str | None = None):
        self.key_id = normalize_hex(key_id or settings.VIDEO_DRM_KEY_ID, "VIDEO_DRM_KEY_ID")
        self.key = normalize_hex(key or settings.VIDEO_DRM_KEY, "VIDEO_DRM_KEY")

    def keys_for(self, lesson_id: str) -> list[ContentKey]:
        return [
            ContentKey(AUDIO_LABEL, self.key_id, self.key),
            ContentKey(VIDEO_LABEL, self.key_id, self.key),
        ]


def get_key_provider(path: str | None = None) -> ContentKeyProvider:
    provider_cls = import_string(path or settings.VIDEO_KEY_PROVIDER)
    return provider_cls()
