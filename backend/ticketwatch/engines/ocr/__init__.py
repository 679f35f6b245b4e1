"""OCR of evidence photo overlays."""

from ticketwatch.engines.ocr.engine import OcrEngine
from ticketwatch.engines.ocr.extractor import (
    GpsExtractionError,
    GpsExtractor,
    ImageAcquisitionError,
    OcrResult,
    TextRecognitionError,
    parse_gps_text,
)

__all__ = [
    "OcrEngine",
    "GpsExtractionError",
    "GpsExtractor",
    "ImageAcquisitionError",
    "OcrResult",
    "TextRecognitionError",
    "parse_gps_text",
]
