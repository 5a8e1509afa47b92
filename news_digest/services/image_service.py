import base64
import io
import logging
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from news_digest.schemas import LeadImage
from news_digest.services.rate_limiter import HTTP, RateLimiter
from news_digest.services.sanitizer import sanitize_error_message

logger = logging.getLogger(__name__)


class ImageService:
    """Downloads the lead image and embeds it as a JPEG data URI"""

    def __init__(self, client: httpx.AsyncClient, rate_limiter: Optional[RateLimiter] = None,
                 max_width: int = 600, quality: int = 80, timeout: float = 15.0):
        self.client = client
        self.rate_limiter = rate_limiter
        self.max_width = max_width
        self.quality = quality
        self.timeout = timeout

    async def fetch_lead_image(self, url: str) -> LeadImage:
        """Falls back to the remote URL when the download or conversion fails"""
        try:
            if self.rate_limiter and not self.rate_limiter.try_consume(HTTP):
                logger.warning("HTTP rate limit reached, using the image URL without embedding")
                return LeadImage(url=url)

            logger.info("Downloading lead image")
            response = await self.client.get(url, timeout=self.timeout)
            response.raise_for_status()

            data_uri = self.to_data_uri(response.content)
            logger.info(f"Lead image embedded ({len(data_uri)} characters)")
            return LeadImage(url=url, data_uri=data_uri)

        except (httpx.HTTPError, UnidentifiedImageError, OSError, ValueError) as e:
            message = sanitize_error_message(str(e))
            logger.warning(f"Could not embed lead image, falling back to URL: {type(e).__name__}: {message}")
            return LeadImage(url=url)

    def to_data_uri(self, content: bytes) -> str:
        """Convert any Pillow-readable image (webp, png, ...) to a resized RGB JPEG"""
        with Image.open(io.BytesIO(content)) as image:
            image = image.convert("RGB")
            if image.width > self.max_width:
                height = round(image.height * self.max_width / image.width)
                image = image.resize((self.max_width, max(height, 1)))

            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=self.quality)

        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"
