"""
Image description helpers built on the gateway's vision endpoint.
"""

import logging
import re
from typing import List, Optional, Union
from urllib.parse import urlparse

from ..core.errors import InvalidArgumentError
from ..models.options import VisionOptions
from ..models.response import VisionResponse
from .manager import LlmServiceManager

logger = logging.getLogger(__name__)

PROMPT_ALT_TEXT = (
    "Generate a concise alt text for this image, under 125 characters, focused on essential "
    "information for screen readers. Be descriptive but brief."
)
PROMPT_TITLE = (
    "Generate an SEO-optimized title for this image, under 60 characters, that is compelling "
    "and keyword-rich for search rankings."
)
PROMPT_DESCRIPTION = (
    "Provide a comprehensive description of this image including subjects, setting, colors, "
    "mood, composition, and notable details."
)

_IMAGE_DATA_URI = re.compile(r"^data:image/(png|jpeg|jpg|gif|webp);base64,")

ImageInput = Union[str, List[str]]


def validate_image_url(image_url: str) -> None:
    """
    Accept http(s) URLs and base64 image data URIs.

    Raises:
        InvalidArgumentError: For anything else
    """
    if _IMAGE_DATA_URI.match(image_url):
        return
    parsed = urlparse(image_url)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return
    raise InvalidArgumentError("Invalid image URL or base64 data URI")


class VisionService:
    """Alt text, titles and descriptions for one image or a list of images."""

    def __init__(self, manager: LlmServiceManager):
        self._manager = manager

    def generate_alt_text(self, image_url: ImageInput, options: Optional[VisionOptions] = None):
        options = self._defaults(options, max_tokens=100, temperature=0.5)
        return self._process(image_url, PROMPT_ALT_TEXT, options)

    def generate_title(self, image_url: ImageInput, options: Optional[VisionOptions] = None):
        options = self._defaults(options, max_tokens=50, temperature=0.7)
        return self._process(image_url, PROMPT_TITLE, options)

    def generate_description(self, image_url: ImageInput, options: Optional[VisionOptions] = None):
        options = self._defaults(options, max_tokens=500, temperature=0.7)
        return self._process(image_url, PROMPT_DESCRIPTION, options)

    def analyze_image_with_prompt(
        self,
        image_url: ImageInput,
        prompt: str,
        options: Optional[VisionOptions] = None,
    ):
        """
        Run a custom prompt against one image or each image of a list.

        Returns:
            The description, or a list of descriptions for list input
        """
        return self._process(image_url, prompt, options or VisionOptions())

    def analyze_image_full(
        self,
        image_url: str,
        prompt: str,
        options: Optional[VisionOptions] = None,
    ) -> VisionResponse:
        """Analyze one image and return the full normalized response."""
        validate_image_url(image_url)
        return self._manager.vision(image_url, prompt, options or VisionOptions())

    def _process(self, image_url: ImageInput, prompt: str, options: VisionOptions):
        if isinstance(image_url, list):
            return [self.analyze_image_full(url, prompt, options).description.strip() for url in image_url]
        return self.analyze_image_full(image_url, prompt, options).description.strip()

    @staticmethod
    def _defaults(options: Optional[VisionOptions], max_tokens: int, temperature: float) -> VisionOptions:
        options = options or VisionOptions()
        if options.max_tokens is None:
            options = options.with_max_tokens(max_tokens)
        if options.temperature is None:
            options = options.with_temperature(temperature)
        return options
