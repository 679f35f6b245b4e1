"""Read GPS coordinates from the overlay printed on ticket evidence photos.

The portal's evidence photos carry a text band along the top edge such as
``Lat: 42.4440 Lng: -76.5019``. The extractor crops that band, binarizes it
and runs OCR on it:

    extractor = GpsExtractor(OcrEngine())
    result = await extractor.extract(image_url_or_data_uri)
    if result:
        print(result.lat, result.lng)

A photo without a readable overlay yields ``None``. Failing to obtain or
decode the image raises ``ImageAcquisitionError``; an OCR failure raises
``TextRecognitionError``. Both are ``GpsExtractionError``s.
"""

import base64
import binascii
import io
import math
import re
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import structlog
from PIL import Image, UnidentifiedImageError

from ticketwatch.engines.http_client import ManagedHttpClient

logger = structlog.get_logger()

GPS_PATTERN = re.compile(r"Lat:\s*([-\d.]+)\s*Lng:\s*([-\d.]+)", re.IGNORECASE)

DEFAULT_BAND_HEIGHT = 60
DEFAULT_THRESHOLD = 128


class GpsExtractionError(Exception):
    """Reading coordinates from an evidence image failed."""


class ImageAcquisitionError(GpsExtractionError):
    """The evidence image could not be downloaded or decoded."""


class TextRecognitionError(GpsExtractionError):
    """The OCR engine failed on the evidence image."""


class TextRecognizer(Protocol):
    async def recognize(self, image: Image.Image) -> str: ...


@dataclass(frozen=True)
class OcrResult:
    """Coordinates read from an evidence photo."""

    lat: float
    lng: float
    raw_text: str


def parse_gps_text(text: str) -> Optional[OcrResult]:
    """Pull ``Lat: ... Lng: ...`` out of recognized text."""
    match = GPS_PATTERN.search(text or "")
    if not match:
        return None

    try:
        lat = float(match.group(1))
        lng = float(match.group(2))
    except ValueError:
        return None

    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None

    return OcrResult(lat=lat, lng=lng, raw_text=text)


def prepare_overlay_band(
    image: Image.Image,
    band_height: int = DEFAULT_BAND_HEIGHT,
    threshold: int = DEFAULT_THRESHOLD,
) -> Image.Image:
    """Crop the top band of the photo and binarize it for OCR."""
    width, height = image.size
    if not width or not height:
        raise ImageAcquisitionError("Unable to read image dimensions")

    band = image.crop((0, 0, width, min(band_height, height)))
    grey = band.convert("L")
    return grey.point(lambda px: 255 if px >= threshold else 0)


class GpsExtractor:
    """Extract GPS coordinates from evidence image URLs or data URIs."""

    def __init__(
        self,
        ocr: TextRecognizer,
        http: Optional[ManagedHttpClient] = None,
        band_height: int = DEFAULT_BAND_HEIGHT,
        threshold: int = DEFAULT_THRESHOLD,
    ):
        self.ocr = ocr
        self.band_height = band_height
        self.threshold = threshold
        self._http = http
        self._owns_http = http is None

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_http and self._http:
            await self._http.close()
            self._http = None

    async def extract(self, image_ref: Optional[str]) -> Optional[OcrResult]:
        """Return the coordinates printed on the image, or None."""
        if not image_ref:
            return None

        data = await self._load_bytes(image_ref)

        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise ImageAcquisitionError(f"Could not decode evidence image: {e}") from e

        processed = prepare_overlay_band(image, self.band_height, self.threshold)
        try:
            text = await self.ocr.recognize(processed)
        except (RuntimeError, OSError) as e:
            # TesseractError is a RuntimeError, TesseractNotFoundError an OSError
            raise TextRecognitionError(f"OCR failed on evidence image: {e}") from e

        result = parse_gps_text(text)
        if result is None:
            logger.debug("No GPS overlay found", text=text.strip()[:120])
            return None

        logger.debug("GPS overlay read", lat=result.lat, lng=result.lng)
        return result

    async def _load_bytes(self, image_ref: str) -> bytes:
        if image_ref.startswith("data:"):
            return self._decode_data_uri(image_ref)

        if self._http is None:
            self._http = ManagedHttpClient()

        try:
            client = await self._http.get_client()
            response = await client.get(image_ref)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ImageAcquisitionError(f"Could not download evidence image: {e}") from e

        return response.content

    @staticmethod
    def _decode_data_uri(data_uri: str) -> bytes:
        _, sep, payload = data_uri.partition(",")
        if not sep or not payload:
            raise ImageAcquisitionError("Invalid data URI format")

        try:
            return base64.b64decode(payload)
        except (binascii.Error, ValueError) as e:
            raise ImageAcquisitionError(f"Invalid base64 image data: {e}") from e
