# ============================================
# file: src/parser/model.py
# ============================================
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Heading(BaseModel):
    level: int = Field(ge=1, le=6)
    text: str = ""


class ImageInfo(BaseModel):
    src: str
    # None means the attribute is absent; "" is an explicit decorative image.
    alt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    loading: Optional[str] = None

    @staticmethod
    def _parse_dim(val: Any) -> Optional[int]:
        if val is None:
            return None
        s = str(val).strip()
        if not s:
            return None
        digits = "".join(ch for ch in s.split(".")[0] if ch.isdigit())
        return int(digits) if digits else None

    @field_validator("width", "height", mode="before")
    @classmethod
    def _normalize_dims(cls, v: Any) -> Optional[int]:
        return cls._parse_dim(v)

    @field_validator("loading", mode="before")
    @classmethod
    def _normalize_loading(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        s = str(v).strip().lower()
        return s or None


class AnchorInfo(BaseModel):
    href_raw: str
    href_resolved: Optional[str] = None
    is_internal: bool = False
    rel: str = ""
    text: str = ""

    @property
    def is_nofollow(self) -> bool:
        return "nofollow" in self.rel.lower().split()


class RobotsDirectives(BaseModel):
    index: bool = True
    follow: bool = True
    raw: str = ""

    @classmethod
    def from_content(cls, content: str) -> "RobotsDirectives":
        tokens = {t.strip().lower() for t in (content or "").split(",") if t.strip()}
        noindex = "noindex" in tokens or "none" in tokens
        nofollow = "nofollow" in tokens or "none" in tokens
        return cls(index=not noindex, follow=not nofollow, raw=(content or "").strip())


class PageDocument(BaseModel):
    """
    Everything the rule engine needs to know about one crawled page.
    `url` is always the normalized key form.
    """
    url: str
    final_url: Optional[str] = None
    status_code: int = 200

    title: Optional[str] = None
    meta_description: Optional[str] = None
    canonical_url: Optional[str] = None
    canonical_raw: Optional[str] = None

    og_tags: Dict[str, str] = Field(default_factory=dict)
    twitter_tags: Dict[str, str] = Field(default_factory=dict)

    headings: List[Heading] = Field(default_factory=list)
    images: List[ImageInfo] = Field(default_factory=list)
    anchors: List[AnchorInfo] = Field(default_factory=list)
    structured_data: List[Dict[str, Any]] = Field(default_factory=list)

    lang: Optional[str] = None
    robots_meta: Optional[RobotsDirectives] = None

    def headings_at(self, level: int) -> List[str]:
        return [h.text for h in self.headings if h.level == level]

    @property
    def internal_targets(self) -> List[str]:
        return [a.href_resolved for a in self.anchors if a.is_internal and a.href_resolved]

    @property
    def is_noindex(self) -> bool:
        return self.robots_meta is not None and not self.robots_meta.index
