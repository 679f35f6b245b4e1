import pytest
from PIL import Image

from ticketwatch.engines.ocr import engine as ocr_engine
from ticketwatch.engines.ocr.engine import OcrEngine


@pytest.fixture
def tesseract(monkeypatch):
    calls = {"version": 0, "images": []}

    def get_version():
        calls["version"] += 1
        return "5.3.0"

    def image_to_string(image, lang=None, config=None):
        calls["images"].append((image.size, lang, config))
        return "Lat: 1.0 Lng: 2.0"

    monkeypatch.setattr(ocr_engine.pytesseract, "get_tesseract_version", get_version)
    monkeypatch.setattr(ocr_engine.pytesseract, "image_to_string", image_to_string)
    return calls


async def test_starts_lazily_once(tesseract):
    engine = OcrEngine(language="eng")
    assert not engine.started

    image = Image.new("L", (10, 5))
    assert await engine.recognize(image) == "Lat: 1.0 Lng: 2.0"
    await engine.recognize(image)

    assert engine.started
    assert tesseract["version"] == 1
    assert tesseract["images"] == [((10, 5), "eng", "--psm 6")] * 2


async def test_closed_engine_refuses_work(tesseract):
    engine = OcrEngine()
    await engine.recognize(Image.new("L", (4, 4)))
    await engine.close()

    assert not engine.started
    with pytest.raises(RuntimeError):
        await engine.recognize(Image.new("L", (4, 4)))
