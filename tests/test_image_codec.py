import base64
import io
import json

import httpx
import pytest
from PIL import Image

from fakes import png_bytes, png_header
from infinet_ai.errors import ImageDecodeError, MediaError
from infinet_ai.services.image_codec import (
    ImageBytes,
    ImageUrl,
    decode_image_output,
    download_image,
    normalize_image,
    resolve_image,
    sniff_image_type,
)


class TestSniff:
    def test_known_formats(self):
        assert sniff_image_type(png_bytes()) == "image/png"
        assert sniff_image_type(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
        assert sniff_image_type(b"GIF89a....") == "image/gif"
        assert sniff_image_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"

    def test_unknown(self):
        assert sniff_image_type(b"hello") is None


class TestDecodeImageOutput:
    def test_raw_png_bytes(self):
        data = png_bytes()
        assert decode_image_output(data) == ImageBytes(data, "image/png")

    def test_bytes_holding_a_url(self):
        assert decode_image_output(b"https://cdn.example/out.png") == ImageUrl("https://cdn.example/out.png")

    def test_plain_url_string(self):
        assert decode_image_output("https://cdn.example/out.webp") == ImageUrl("https://cdn.example/out.webp")

    def test_data_url(self):
        data = png_bytes()
        encoded = base64.b64encode(data).decode("ascii")
        assert decode_image_output(f"data:image/png;base64,{encoded}") == ImageBytes(data, "image/png")

    def test_json_string(self):
        payload = json.dumps({"output": ["https://cdn.example/1.png", "https://cdn.example/2.png"]})
        assert decode_image_output(payload) == ImageUrl("https://cdn.example/1.png")

    def test_list_takes_first_item(self):
        assert decode_image_output(["https://a.example/x.png", "https://b.example/y.png"]) == ImageUrl(
            "https://a.example/x.png"
        )

    @pytest.mark.parametrize("key", ["url", "image", "image_url", "imageUrl", "output"])
    def test_mapping_keys(self, key):
        assert decode_image_output({key: "https://cdn.example/k.png"}) == ImageUrl("https://cdn.example/k.png")

    def test_url_embedded_in_text(self):
        assert decode_image_output('Done! See "https://cdn.example/z.png" for it') == ImageUrl(
            "https://cdn.example/z.png"
        )

    @pytest.mark.parametrize("output", [None, [], {}, "no link here", 42, b"\x00\x01\xfe\xff"])
    def test_unrecognised_shapes(self, output):
        with pytest.raises(ImageDecodeError):
            decode_image_output(output)

    def test_decode_error_is_a_media_error(self):
        with pytest.raises(MediaError):
            decode_image_output({"status": "succeeded"})


class TestDownload:
    @pytest.mark.asyncio
    async def test_downloads_and_sniffs(self):
        data = png_bytes()
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=data))

        image = await download_image("https://cdn.example/out", transport=transport)

        assert image == ImageBytes(data, "image/png")

    @pytest.mark.asyncio
    async def test_non_200_is_media_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404, text="gone"))
        with pytest.raises(MediaError):
            await download_image("https://cdn.example/missing.png", transport=transport)

    @pytest.mark.asyncio
    async def test_size_limit(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 100))
        with pytest.raises(MediaError):
            await download_image("https://cdn.example/big.png", max_bytes=10, transport=transport)

    @pytest.mark.asyncio
    async def test_resolve_passes_bytes_through(self):
        image = ImageBytes(b"data", "image/png")
        assert await resolve_image(image) is image


class TestNormalize:
    @pytest.mark.asyncio
    async def test_fits_inside_square_png(self):
        result = await normalize_image(png_bytes(400, 200), dimension=128)

        assert result.mime_type == "image/png"
        with Image.open(io.BytesIO(result.data)) as image:
            assert image.size == (128, 128)
            assert image.mode == "RGBA"
            assert image.getpixel((0, 0))[3] == 0
            assert image.getpixel((64, 64))[:3] == (255, 0, 0)

    @pytest.mark.asyncio
    async def test_unreadable_image(self):
        with pytest.raises(MediaError):
            await normalize_image(b"not an image", dimension=64)

    @pytest.mark.asyncio
    async def test_empty_image(self):
        with pytest.raises(MediaError):
            await normalize_image(b"", dimension=64)

    @pytest.mark.asyncio
    async def test_decompression_bomb_is_refused(self):
        with pytest.raises(MediaError):
            await normalize_image(png_header(20000, 20000), dimension=64)

    @pytest.mark.asyncio
    async def test_pixel_cap_is_checked_before_decoding(self):
        with pytest.raises(MediaError, match="pixel limit"):
            await normalize_image(png_header(5000, 5000), dimension=64, max_pixels=1_000_000)
