# backend/model.py
import base64
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

VariantStatus = Literal["pending", "ready", "failed"]


class StyleCategory(str, Enum):
    TWO_D_PICTO = "2d_picto"
    THREE_D_FLAT = "3d_flat"
    THREE_D_PERSPECTIVE = "3d_perspective"

    @property
    def label(self) -> str:
        return STYLE_LABELS[self]


STYLE_LABELS = {
    StyleCategory.TWO_D_PICTO: "2D Standard Icons",
    StyleCategory.THREE_D_FLAT: "3D Flat View",
    StyleCategory.THREE_D_PERSPECTIVE: "3D Perspective",
}


class EncodedImage(BaseModel):
    """Raw image bytes plus their media type."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def variant_key(style: StyleCategory, index: int) -> str:
    return f"{style.value}-{index}"


class DiagramVariant(BaseModel):
    model_config = ConfigDict(frozen=True)

    style: StyleCategory
    index: int
    status: VariantStatus = "pending"
    image: Optional[EncodedImage] = None
    error_message: Optional[str] = None

    @property
    def id(self) -> str:
        return variant_key(self.style, self.index)
