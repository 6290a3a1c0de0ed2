import io
import logging
import uuid
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from config.settings import settings
from .model import EncodedImage

logger = logging.getLogger(__name__)

FALLBACK_MIME_TYPE = "image/png"


def _scaled_size(width: int, height: int, limit: int) -> Tuple[int, int]:
    """
    Keep the aspect ratio and shrink so the larger side equals `limit`.
    Images already inside the limit are returned as is.
    """
    if width <= limit and height <= limit:
        return width, height
    if width > height:
        return limit, max(1, round(height * limit / width))
    return max(1, round(width * limit / height)), limit


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    # JPEG has no alpha channel, composite on white like the canvas does
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def prepare_image(data: bytes) -> EncodedImage:
    """
    Downscale to settings.IMAGE_MAX_DIMENSION and re-encode as JPEG.
    EXIF orientation is applied first so the model sees the image upright.
    If the bytes cannot be decoded, the original payload goes out unchanged
    as image/png.
    """
    try:
        with Image.open(io.BytesIO(data)) as opened:
            opened.load()
            image = ImageOps.exif_transpose(opened)
            # palette images only resample with NEAREST, flatten before resizing
            image = _flatten_to_rgb(image)
            size = _scaled_size(image.width, image.height, settings.IMAGE_MAX_DIMENSION)
            if size != image.size:
                logger.info(f"[ImagePrep] Resizing {image.size} -> {size}")
                image = image.resize(size, Image.Resampling.LANCZOS)

            output = io.BytesIO()
            image.save(output, format="JPEG", quality=settings.JPEG_QUALITY)
            return EncodedImage(data=output.getvalue(), mime_type="image/jpeg")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning(f"[ImagePrep] Cannot decode image ({e}), sending original bytes")
        return EncodedImage(data=data, mime_type=FALLBACK_MIME_TYPE)


def gen_batch_id() -> str:
    return str(uuid.uuid4())
