"""Static deck configuration models."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from utils.file_utils import load_json


class ButtonConfig(BaseModel):
    """One button slot on a page.

    Action parameters (``url``, ``command``, ``page_id`` ...) live next to the
    visual keys, so unknown fields are kept.
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    text: Optional[str] = None
    image: Optional[str] = None
    color: Optional[str] = None
    text_color: Optional[str] = None
    font_size: Optional[int] = Field(default=None, ge=1)
    stateful: bool = False
    state_images: dict[str, str] = Field(default_factory=dict)

    def action_config(self) -> dict[str, Any]:
        """Full config as a plain dict, extras included, unset keys dropped."""
        return self.model_dump(exclude_none=True)


class DialConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    text: Optional[str] = None


class PageConfig(BaseModel):
    buttons: dict[int, ButtonConfig] = Field(default_factory=dict)
    dials: dict[int, DialConfig] = Field(default_factory=dict)


class DeviceConfig(BaseModel):
    name: Optional[str] = None
    pages: dict[str, PageConfig] = Field(default_factory=dict)
    default_page: Optional[str] = None

    def initial_page(self) -> str | None:
        if self.default_page and self.default_page in self.pages:
            return self.default_page
        return next(iter(self.pages), None)


class GlobalSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    log_file: Optional[str] = None
    log_level: Optional[str] = None


class DeckConfig(BaseModel):
    devices: dict[str, DeviceConfig] = Field(default_factory=dict)
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings)
    version: Optional[str] = None


def coerce_config(config: DeckConfig | dict[str, Any] | None) -> DeckConfig:
    if config is None:
        return DeckConfig()
    if isinstance(config, DeckConfig):
        return config
    return DeckConfig.model_validate(config)


def load_deck_config(path: str | Path) -> DeckConfig:
    """Read a JSON deck config; a missing file yields an empty config."""
    return DeckConfig.model_validate(load_json(path))
