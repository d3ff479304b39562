"""
Infrastructure layer: uploaded image handling.

Validation, EXIF GPS extraction, preview generation and a pixel-statistics
soil/vegetation classifier. Decoding is done with Pillow, pixel maths with
numpy.
"""
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple
import base64
import io
import logging
import math

import numpy as np
from PIL import ExifTags, Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from reforest.config import Settings
from reforest.domain.errors import CollaboratorError, ValidationError
from reforest.domain.models import LocationFix, LocationSource, SiteAnalysis, VegetationLevel

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/heic", "image/heif")


class UploadedImage(BaseModel):
    """An image file held in memory for the lifetime of a workflow."""
    filename: str = "upload"
    content_type: str = ""
    data: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ImageConfig:
    max_bytes: int = 15 * 1024 * 1024
    allowed_types: Tuple[str, ...] = field(default=DEFAULT_ALLOWED_TYPES)
    preview_size: int = 600
    analysis_size: int = 600
    """Images are downscaled to this edge length before pixel statistics"""

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImageConfig":
        return cls(
            max_bytes=settings.max_upload_bytes,
            allowed_types=tuple(t.lower() for t in settings.allowed_image_types),
        )


def dms_to_decimal(dms: Any, ref: Optional[str]) -> float:
    """Convert an EXIF (degrees, minutes, seconds) triple to signed decimal degrees."""
    degrees, minutes, seconds = (float(part) for part in dms)
    value = degrees + minutes / 60 + seconds / 3600
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if ref and ref.strip().upper() in ("S", "W"):
        value = -value
    return value


def parse_gps_ifd(gps: Mapping[int, Any]) -> LocationFix:
    """
    Build a LocationFix from a decoded EXIF GPS IFD.

    Missing or out-of-range coordinates yield ``has_coordinates=False``
    with a reason instead of raising.
    """
    latitude = gps.get(ExifTags.GPS.GPSLatitude)
    longitude = gps.get(ExifTags.GPS.GPSLongitude)
    if not latitude or not longitude:
        return LocationFix(reason="No GPS in EXIF")

    try:
        lat = dms_to_decimal(latitude, gps.get(ExifTags.GPS.GPSLatitudeRef))
        lon = dms_to_decimal(longitude, gps.get(ExifTags.GPS.GPSLongitudeRef))
    except (TypeError, ValueError, ZeroDivisionError) as e:
        return LocationFix(reason=f"Unreadable GPS data: {e}")

    if math.isnan(lat) or math.isnan(lon) or abs(lat) > 90 or abs(lon) > 180:
        return LocationFix(reason="Invalid coordinates")

    altitude = gps.get(ExifTags.GPS.GPSAltitude)
    return LocationFix(
        latitude=lat,
        longitude=lon,
        altitude=float(altitude) if altitude is not None else None,
        has_coordinates=True,
        source=LocationSource.GPS,
    )


def classify_pixels(rgb: np.ndarray) -> SiteAnalysis:
    """
    Classify vegetation cover and soil type from an RGB pixel array.

    Args:
        rgb: Array of shape (height, width, 3)
    """
    pixels = rgb.reshape(-1, 3).astype(np.int16)
    if pixels.size == 0:
        raise ValueError("Image has no pixels")
    r, g, b = pixels[:, 0], pixels[:, 1], pixels[:, 2]

    green = (g > r + 10) & (g > b + 10) & (g > 80)
    brown = (
        (r > 80) & (r < 200)
        & (g > 50) & (g < 180)
        & (b > 20) & (b < 150)
        & (np.abs(r - g) < 60)
    )
    grey = (np.abs(r - g) < 20) & (np.abs(g - b) < 20) & (r > 100) & (r < 200)

    green_pct = float(green.mean() * 100)
    brown_pct = float(brown.mean() * 100)
    grey_pct = float(grey.mean() * 100)
    avg_r = float(r.mean())

    if green_pct > 35:
        vegetation = VegetationLevel.DENSE
    elif green_pct > 18:
        vegetation = VegetationLevel.MODERATE
    elif green_pct > 5:
        vegetation = VegetationLevel.SPARSE
    else:
        vegetation = VegetationLevel.BARE

    if grey_pct > 30:
        soil = "rocky"
    elif avg_r > 140 and brown_pct > 25:
        soil = "sandy"
    elif 100 < avg_r < 140 and brown_pct > 20:
        soil = "clay"
    else:
        soil = "loam"

    logger.debug(
        f"Pixel stats: green={green_pct:.1f}% brown={brown_pct:.1f}% "
        f"grey={grey_pct:.1f}% avgR={avg_r:.0f}"
    )
    return SiteAnalysis(
        soil_type=soil,
        vegetation_level=vegetation,
        vegetation_coverage=round(green_pct, 1),
        confidence=round(min(100.0, max(green_pct, brown_pct, grey_pct)), 1),
    )


class ImageAnalyzer:
    """
    Image collaborator used by the workflow.

    ``validate`` is synchronous and local; the other operations decode the
    image and never touch the network.
    """

    service_name = "image-analysis"

    def __init__(self, config: Optional[ImageConfig] = None):
        self.config = config or ImageConfig()

    def validate(self, image: UploadedImage) -> None:
        """
        Check MIME type and size.

        Raises:
            ValidationError: If the file is missing, of the wrong type or too large
        """
        if not image.data:
            raise ValidationError("No file provided")

        content_type = (image.content_type or "").lower()
        if content_type not in self.config.allowed_types:
            raise ValidationError(
                f"Invalid file type: {image.content_type or 'unknown'}. "
                f"Please upload JPEG, PNG, or HEIC images."
            )

        if image.size > self.config.max_bytes:
            raise ValidationError(
                f"File too large: {image.size / 1024 / 1024:.1f}MB. "
                f"Maximum size is {self.config.max_bytes / 1024 / 1024:.0f}MB."
            )

        logger.info(f"File validated: {image.filename} ({image.size / 1024:.1f}KB)")

    def _open(self, image: UploadedImage) -> Image.Image:
        return Image.open(io.BytesIO(image.data))

    async def extract_location(self, image: UploadedImage) -> LocationFix:
        """Read GPS coordinates from EXIF. Never raises."""
        try:
            with self._open(image) as img:
                gps = img.getexif().get_ifd(ExifTags.IFD.GPSInfo)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"EXIF read failed for {image.filename}: {e}")
            return LocationFix(reason=f"EXIF unreadable: {e}")

        fix = parse_gps_ifd(gps or {})
        if fix.has_coordinates:
            logger.info(f"GPS extracted: ({fix.latitude:.5f}, {fix.longitude:.5f})")
        else:
            logger.info(f"No usable GPS for {image.filename}: {fix.reason}")
        return fix

    async def create_preview(self, image: UploadedImage) -> Optional[str]:
        """JPEG thumbnail as a data URL, or None when the image cannot be decoded."""
        try:
            with self._open(image) as img:
                thumbnail = img.convert("RGB")
                thumbnail.thumbnail((self.config.preview_size, self.config.preview_size))
                buffer = io.BytesIO()
                thumbnail.save(buffer, format="JPEG", quality=85)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"Preview generation failed for {image.filename}: {e}")
            return None

        encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
        return f"data:image/jpeg;base64,{encoded}"

    async def classify_site(self, image: UploadedImage) -> SiteAnalysis:
        """
        Estimate soil type and vegetation level from pixel colours.

        Raises:
            CollaboratorError: If the image cannot be decoded
        """
        try:
            with self._open(image) as img:
                rgb = img.convert("RGB")
                rgb.thumbnail((self.config.analysis_size, self.config.analysis_size))
                pixels = np.asarray(rgb)
            analysis = classify_pixels(pixels)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.error(f"Site classification failed for {image.filename}: {e}")
            raise CollaboratorError(
                f"Could not analyse image: {e}",
                service=self.service_name,
            )

        logger.info(
            f"Site analysis: soil={analysis.soil_type}, "
            f"vegetation={analysis.vegetation_level.value}"
        )
        return analysis
