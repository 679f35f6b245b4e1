import httpx
import pytest
from PIL import Image

from ticketwatch.engines.http_client import ManagedHttpClient
from ticketwatch.engines.ocr.extractor import (
    GpsExtractionError,
    GpsExtractor,
    ImageAcquisitionError,
    TextRecognitionError,
    parse_gps_text,
    prepare_overlay_band,
)

from fakes import FailingOcr, FakeOcr, png_bytes, png_data_uri


def http_serving(status: int = 200, content: bytes = b"") -> ManagedHttpClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=content)

    return ManagedHttpClient(transport=httpx.MockTransport(handler))


async def test_reads_coordinates_from_overlay():
    extractor = GpsExtractor(FakeOcr("Lat: 42.4440 Lng: -76.5019\n"))

    result = await extractor.extract(png_data_uri())

    assert result.lat == 42.444
    assert result.lng == -76.5019
    assert "Lat:" in result.raw_text


async def test_no_overlay_is_none():
    extractor = GpsExtractor(FakeOcr("ITHACA NY 12/15/2025"))
    assert await extractor.extract(png_data_uri()) is None


async def test_empty_reference_is_none():
    ocr = FakeOcr()
    extractor = GpsExtractor(ocr)

    assert await extractor.extract(None) is None
    assert await extractor.extract("") is None
    assert ocr.images == []


async def test_downloads_remote_image():
    extractor = GpsExtractor(FakeOcr(), http=http_serving(content=png_bytes()))

    result = await extractor.extract("https://evidence.test/photo.jpg")

    assert (result.lat, result.lng) == (42.444, -76.5019)


async def test_download_failure_raises():
    extractor = GpsExtractor(FakeOcr(), http=http_serving(status=404))

    with pytest.raises(ImageAcquisitionError):
        await extractor.extract("https://evidence.test/missing.jpg")


async def test_undecodable_image_raises():
    extractor = GpsExtractor(FakeOcr(), http=http_serving(content=b"<html>not an image</html>"))

    with pytest.raises(ImageAcquisitionError):
        await extractor.extract("https://evidence.test/photo.jpg")


@pytest.mark.parametrize("data_uri", ["data:image/png;base64", "data:image/png;base64,"])
async def test_invalid_data_uri_raises(data_uri):
    with pytest.raises(ImageAcquisitionError):
        await GpsExtractor(FakeOcr()).extract(data_uri)


async def test_ocr_sees_only_the_binarized_top_band():
    ocr = FakeOcr()
    await GpsExtractor(ocr).extract(png_data_uri(320, 200))

    (image,) = ocr.images
    assert image.size == (320, 60)
    assert image.mode == "L"
    assert set(image.getdata()) <= {0, 255}


async def test_short_image_is_not_padded():
    ocr = FakeOcr()
    await GpsExtractor(ocr).extract(png_data_uri(100, 40))

    assert ocr.images[0].size == (100, 40)


def test_band_threshold():
    image = Image.new("RGB", (4, 4), (200, 200, 200))
    image.putpixel((0, 0), (20, 20, 20))

    band = prepare_overlay_band(image, band_height=2, threshold=128)

    assert band.size == (4, 2)
    assert band.getpixel((0, 0)) == 0
    assert band.getpixel((1, 0)) == 255


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Lat: 42.4440 Lng: -76.5019", (42.444, -76.5019)),
        ("cam 3  lat:-33.8 lng:151.2 ", (-33.8, 151.2)),
        ("Lat:\n10 Lng:\t-20", (10.0, -20.0)),
    ],
)
def test_parse_gps_text(text, expected):
    result = parse_gps_text(text)
    assert (result.lat, result.lng) == expected


@pytest.mark.parametrize("text", ["", "Lat: Lng:", "Lat: 1.2.3 Lng: 4", "Lng: 4 Lat: 1"])
def test_parse_gps_text_rejects_garbage(text):
    assert parse_gps_text(text) is None


async def test_ocr_failure_raises_recognition_error():
    extractor = GpsExtractor(FailingOcr(RuntimeError("tesseract exited with status 1")))

    with pytest.raises(TextRecognitionError):
        await extractor.extract(png_data_uri())


async def test_oversized_image_raises(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    with pytest.raises(ImageAcquisitionError) as excinfo:
        await GpsExtractor(FakeOcr()).extract(png_data_uri(320, 200))
    assert isinstance(excinfo.value, GpsExtractionError)
