"""Shared Tesseract OCR engine."""

import asyncio
from typing import Optional

import pytesseract
import structlog
from PIL import Image

logger = structlog.get_logger()


class OcrEngine:
    """
    Process-wide text recognizer backed by Tesseract.

    Initialization (locating the binary and checking its version) happens
    on first use. Calls are serialized with a lock and run in a worker
    thread so the event loop keeps serving the browser session. Create one
    per process, hand it to whoever needs OCR, and ``close()`` it at
    shutdown.
    """

    def __init__(self, language: str = "eng", config: str = "--psm 6"):
        self.language = language
        self.config = config
        self._lock = asyncio.Lock()
        self._version: Optional[str] = None
        self._closed = False

    @property
    def started(self) -> bool:
        return self._version is not None

    async def _ensure_started(self) -> None:
        if self._closed:
            raise RuntimeError("OCR engine has been closed")
        if self._version is not None:
            return

        version = await asyncio.to_thread(pytesseract.get_tesseract_version)
        self._version = str(version)
        logger.info("OCR engine started", tesseract=self._version, language=self.language)

    async def recognize(self, image: Image.Image) -> str:
        """Return the text Tesseract reads in ``image``."""
        async with self._lock:
            await self._ensure_started()
            return await asyncio.to_thread(
                pytesseract.image_to_string,
                image,
                lang=self.language,
                config=self.config,
            )

    async def close(self) -> None:
        """Release the engine; further calls raise."""
        async with self._lock:
            if self._version is not None:
                logger.info("OCR engine stopped")
            self._version = None
            self._closed = True
