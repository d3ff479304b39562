"""
Unit tests for uploaded image handling.
"""
import numpy as np
import pytest
from PIL import ExifTags

from reforest.domain.errors import CollaboratorError, SuggestedAction, ValidationError
from reforest.domain.models import LocationSource, VegetationLevel
from reforest.infrastructure.image_analysis import (
    ImageAnalyzer,
    ImageConfig,
    UploadedImage,
    classify_pixels,
    dms_to_decimal,
    parse_gps_ifd,
)


@pytest.fixture
def analyzer() -> ImageAnalyzer:
    return ImageAnalyzer()


def _solid(color, size=(20, 20)) -> np.ndarray:
    return np.full((size[1], size[0], 3), color, dtype=np.uint8)


# ============================================================
# Validation Tests
# ============================================================

class TestValidation:
    """Tests for MIME type and size checks."""

    def test_valid_png(self, analyzer, sample_image):
        analyzer.validate(sample_image)

    def test_content_type_is_case_insensitive(self, analyzer, png_bytes):
        analyzer.validate(UploadedImage(filename="a.jpg", content_type="IMAGE/JPEG", data=png_bytes()))

    def test_wrong_type(self, analyzer, png_bytes):
        image = UploadedImage(filename="notes.pdf", content_type="application/pdf", data=png_bytes())

        with pytest.raises(ValidationError) as exc_info:
            analyzer.validate(image)

        assert "Invalid file type" in exc_info.value.message
        assert exc_info.value.suggested_action is SuggestedAction.CHOOSE_IMAGE
        assert exc_info.value.status_code == 400

    def test_too_large(self, sample_image):
        analyzer = ImageAnalyzer(ImageConfig(max_bytes=10))

        with pytest.raises(ValidationError, match="File too large"):
            analyzer.validate(sample_image)

    def test_empty_file(self, analyzer):
        with pytest.raises(ValidationError, match="No file provided"):
            analyzer.validate(UploadedImage(filename="a.png", content_type="image/png", data=b""))


# ============================================================
# GPS Extraction Tests
# ============================================================

class TestGpsExtraction:
    """Tests for EXIF GPS parsing."""

    def test_parse_southern_eastern_hemisphere(self):
        gps = {
            ExifTags.GPS.GPSLatitudeRef: "S",
            ExifTags.GPS.GPSLatitude: (1.0, 17.0, 31.56),
            ExifTags.GPS.GPSLongitudeRef: "E",
            ExifTags.GPS.GPSLongitude: (36.0, 49.0, 18.84),
            ExifTags.GPS.GPSAltitude: 1661.0,
        }
        fix = parse_gps_ifd(gps)

        assert fix.has_coordinates
        assert fix.source is LocationSource.GPS
        assert fix.latitude == pytest.approx(-1.2921, abs=1e-4)
        assert fix.longitude == pytest.approx(36.8219, abs=1e-4)
        assert fix.altitude == 1661.0
        assert not fix.approximate

    def test_western_reference_as_bytes(self):
        assert dms_to_decimal((74, 0, 0), b"W") == -74

    def test_missing_gps(self):
        fix = parse_gps_ifd({})

        assert not fix.has_coordinates
        assert fix.reason == "No GPS in EXIF"
        assert fix.coordinates is None

    def test_out_of_range(self):
        gps = {
            ExifTags.GPS.GPSLatitudeRef: "N",
            ExifTags.GPS.GPSLatitude: (95.0, 0.0, 0.0),
            ExifTags.GPS.GPSLongitudeRef: "E",
            ExifTags.GPS.GPSLongitude: (36.0, 0.0, 0.0),
        }

        assert parse_gps_ifd(gps).reason == "Invalid coordinates"

    def test_unreadable_values(self):
        gps = {
            ExifTags.GPS.GPSLatitude: (1.0, 2.0),
            ExifTags.GPS.GPSLongitude: (36.0, 0.0, 0.0),
        }
        fix = parse_gps_ifd(gps)

        assert not fix.has_coordinates
        assert fix.reason.startswith("Unreadable GPS data")

    @pytest.mark.asyncio
    async def test_image_without_exif(self, analyzer, sample_image):
        fix = await analyzer.extract_location(sample_image)

        assert not fix.has_coordinates
        assert fix.source is LocationSource.FALLBACK

    @pytest.mark.asyncio
    async def test_undecodable_image_never_raises(self, analyzer):
        image = UploadedImage(filename="broken.jpg", content_type="image/jpeg", data=b"not an image")
        fix = await analyzer.extract_location(image)

        assert not fix.has_coordinates
        assert fix.reason.startswith("EXIF unreadable")


# ============================================================
# Preview and Classification Tests
# ============================================================

class TestPreview:
    """Tests for thumbnail generation."""

    @pytest.mark.asyncio
    async def test_preview_is_jpeg_data_url(self, analyzer, sample_image):
        preview = await analyzer.create_preview(sample_image)

        assert preview.startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_preview_of_broken_image(self, analyzer):
        image = UploadedImage(filename="broken.png", content_type="image/png", data=b"\x89PNG broken")

        assert await analyzer.create_preview(image) is None


class TestClassification:
    """Tests for the pixel statistics classifier."""

    @pytest.mark.parametrize("color,soil,vegetation", [
        ((40, 200, 40), "loam", VegetationLevel.DENSE),
        ((170, 130, 80), "sandy", VegetationLevel.BARE),
        ((150, 150, 150), "rocky", VegetationLevel.BARE),
        ((120, 90, 60), "clay", VegetationLevel.BARE),
    ])
    def test_solid_colours(self, color, soil, vegetation):
        analysis = classify_pixels(_solid(color))

        assert analysis.soil_type == soil
        assert analysis.vegetation_level is vegetation

    def test_partial_vegetation(self):
        pixels = _solid((170, 130, 80))
        pixels[:5, :, :] = (40, 200, 40)

        analysis = classify_pixels(pixels)

        assert analysis.vegetation_coverage == 25.0
        assert analysis.vegetation_level is VegetationLevel.MODERATE

    def test_empty_array(self):
        with pytest.raises(ValueError):
            classify_pixels(np.zeros((0, 0, 3), dtype=np.uint8))

    @pytest.mark.asyncio
    async def test_classify_uploaded_image(self, analyzer, png_bytes):
        image = UploadedImage(filename="bare.png", content_type="image/png", data=png_bytes((170, 130, 80)))

        analysis = await analyzer.classify_site(image)

        assert analysis.soil_type == "sandy"

    @pytest.mark.asyncio
    async def test_classify_broken_image(self, analyzer):
        image = UploadedImage(filename="broken.png", content_type="image/png", data=b"garbage")

        with pytest.raises(CollaboratorError) as exc_info:
            await analyzer.classify_site(image)

        assert exc_info.value.service == "image-analysis"
