"""
LLM-backed translation.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Union

from ..core.errors import InvalidArgumentError
from ..models.options import TranslationOptions
from ..models.response import TranslationResult
from .manager import LlmServiceManager

logger = logging.getLogger(__name__)

LANGUAGE_CODE = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")

LANGUAGE_NAMES = {
    "en": "English",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "pl": "Polish",
    "ru": "Russian",
    "ja": "Japanese",
    "zh": "Chinese",
    "ko": "Korean",
    "ar": "Arabic",
}

DETECT_PROMPT = (
    'You are a language detection expert. Respond with ONLY the ISO 639-1 language code '
    '(e.g., "en", "de", "fr"). No explanation.'
)

QUALITY_PROMPT = (
    "You are a translation quality expert. Evaluate the translation quality based on "
    "accuracy, fluency, and consistency. Respond with ONLY a number between 0.0 and 1.0 "
    '(e.g., "0.85"). No explanation.'
)

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 2000

TranslationOptionsLike = Union[TranslationOptions, Mapping[str, Any], None]


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.split("-")[0], code)


def validate_language_code(code: str) -> None:
    if not isinstance(code, str) or not LANGUAGE_CODE.match(code):
        raise InvalidArgumentError(
            'Invalid language code format. Expected ISO 639-1 (e.g., "en", "de-DE")'
        )


def confidence_for(finish_reason: str) -> float:
    """Heuristic confidence from how the completion ended."""
    if finish_reason == "stop":
        return 0.9
    if finish_reason == "length":
        return 0.6
    return 0.5


class TranslationService:
    """
    Translates text through the gateway's chat endpoint.

    Each translation is recorded as one "translation" usage event with
    the source text length as the characters metric.
    """

    def __init__(self, manager: LlmServiceManager):
        self._manager = manager

    def translate(
        self,
        text: str,
        target_language: str,
        source_language: Optional[str] = None,
        options: TranslationOptionsLike = None,
    ) -> TranslationResult:
        """
        Translate text.

        Args:
            text: Text to translate
            target_language: ISO 639-1 code, optionally with region (e.g. "de-DE")
            source_language: Source code; detected automatically when None
            options: Translation options or raw map

        Returns:
            Translation with confidence and usage

        Raises:
            InvalidArgumentError: On empty text, bad language codes or options
        """
        if not text:
            raise InvalidArgumentError("Text cannot be empty")

        validate_language_code(target_language)
        opts = self._resolve(options)

        if source_language is None:
            source_language = self.detect_language(text, opts)
        else:
            validate_language_code(source_language)

        messages = [
            {"role": "system", "content": self._build_system_prompt(source_language, target_language, opts)},
            {"role": "user", "content": f"Translate this text:\n\n{text}"},
        ]

        response = self._scoped(characters=len(text)).chat(messages, self._request_options(
            opts,
            temperature=opts.get("temperature", DEFAULT_TEMPERATURE),
            max_tokens=opts.get("max_tokens", DEFAULT_MAX_TOKENS),
        ))

        return TranslationResult(
            translation=response.content,
            source_language=source_language,
            target_language=target_language,
            confidence=confidence_for(response.finish_reason),
            usage=response.usage,
        )

    def translate_batch(
        self,
        texts: List[str],
        target_language: str,
        source_language: Optional[str] = None,
        options: TranslationOptionsLike = None,
    ) -> List[TranslationResult]:
        """Translate each text with its own request, preserving order."""
        return [
            self.translate(text, target_language, source_language, options)
            for text in texts
        ]

    def detect_language(self, text: str, options: TranslationOptionsLike = None) -> str:
        """
        Detect the language of a text.

        Returns:
            Two-letter ISO 639-1 code, "en" when the answer is unusable
        """
        opts = self._resolve(options)
        messages = [
            {"role": "system", "content": DETECT_PROMPT},
            {"role": "user", "content": f"Detect the language of this text:\n\n{text}"},
        ]

        response = self._scoped().chat(
            messages, self._request_options(opts, temperature=0.1, max_tokens=10),
        )

        detected = response.content.strip().lower()
        if not re.match(r"^[a-z]{2}$", detected):
            logger.warning(f"Language detection returned {detected!r}, falling back to 'en'")
            return "en"
        return detected

    def score_translation_quality(
        self,
        source_text: str,
        translated_text: str,
        target_language: str,
        options: TranslationOptionsLike = None,
    ) -> float:
        """
        Ask the model to rate a translation.

        Returns:
            Score clamped to [0.0, 1.0]; 0.0 when the answer is not a number
        """
        opts = self._resolve(options)
        messages = [
            {"role": "system", "content": QUALITY_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Source text:\n{source_text}\n\n"
                    f"Translation to {target_language}:\n{translated_text}\n\n"
                    "Quality score:"
                ),
            },
        ]

        response = self._scoped().chat(
            messages, self._request_options(opts, temperature=0.1, max_tokens=10),
        )

        try:
            score = float(response.content.strip())
        except ValueError:
            logger.warning(f"Quality score is not a number: {response.content!r}")
            return 0.0
        return max(0.0, min(1.0, score))

    def _build_system_prompt(self, source_language: str, target_language: str, opts: Dict[str, Any]) -> str:
        formality = opts.get("formality", "default")
        domain = opts.get("domain", "general")
        glossary = opts.get("glossary") or {}
        context = opts.get("context")

        prompt = (
            f"You are a professional {domain} translator. "
            f"Translate the following text from {language_name(source_language)} "
            f"to {language_name(target_language)}.\n"
        )

        if formality != "default":
            prompt += f"Maintain {formality} tone.\n"

        if opts.get("preserve_formatting", True):
            prompt += "Preserve all formatting, HTML tags, markdown, and special characters.\n"

        if glossary:
            prompt += "\nUse these exact term translations:\n"
            for term, translation in glossary.items():
                prompt += f"- {term} → {translation}\n"

        if context:
            prompt += f"\nContext (for reference only):\n{context}\n"

        prompt += "\nProvide ONLY the translation, no explanations or notes."
        return prompt

    @staticmethod
    def _resolve(options: TranslationOptionsLike) -> Dict[str, Any]:
        if options is None:
            return TranslationOptions().to_dict()
        if isinstance(options, TranslationOptions):
            return options.to_dict()
        if not isinstance(options, Mapping):
            raise InvalidArgumentError("Translation options must be TranslationOptions or a mapping")
        return TranslationOptions(**dict(options)).to_dict()

    def _scoped(self, **metrics: float):
        return self._manager.for_service("translation", **metrics)

    @staticmethod
    def _request_options(opts: Dict[str, Any], **sampling: Any) -> Dict[str, Any]:
        request = dict(sampling)
        for key in ("provider", "model"):
            if opts.get(key):
                request[key] = opts[key]
        return request
