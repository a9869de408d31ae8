"""
Language detection for the reply-language directive.

Detection never fails the pipeline: anything langdetect cannot place in
the supported set falls back to English.
"""

import logging

from langdetect import DetectorFactory, LangDetectException, detect

logger = logging.getLogger(__name__)

# langdetect is probabilistic; a fixed seed keeps results repeatable.
DetectorFactory.seed = 0

DEFAULT_LANGUAGE = "English"

SUPPORTED_LANGUAGES: dict[str, str] = {
    "ar": "Arabic",
    "bg": "Bulgarian",
    "cs": "Czech",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "es": "Spanish",
    "fi": "Finnish",
    "fr": "French",
    "he": "Hebrew",
    "hi": "Hindi",
    "hr": "Croatian",
    "hu": "Hungarian",
    "id": "Indonesian",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nl": "Dutch",
    "no": "Norwegian",
    "pl": "Polish",
    "pt": "Portuguese",
    "ro": "Romanian",
    "ru": "Russian",
    "sk": "Slovak",
    "sv": "Swedish",
    "th": "Thai",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "zh-cn": "Chinese",
    "zh-tw": "Chinese",
}

DIRECTIVE_TEMPLATE = "Always reply in the same language as the user's question: {language}.\n\n"


class LanguageDetector:
    def __init__(self, default: str = DEFAULT_LANGUAGE) -> None:
        self.default = default

    def detect(self, text: str) -> str:
        """Return the English name of the language `text` is written in."""
        if not text or not text.strip():
            return self.default
        try:
            code = detect(text)
        except LangDetectException:
            logger.debug("Language detection failed, defaulting to %s", self.default)
            return self.default

        language = SUPPORTED_LANGUAGES.get(code.lower())
        if language is None:
            logger.debug("Detected unsupported language '%s', defaulting to %s", code, self.default)
            return self.default
        logger.debug("Detected language: %s", language)
        return language

    @staticmethod
    def directive(language: str) -> str:
        return DIRECTIVE_TEMPLATE.format(language=language)

    @staticmethod
    def instructions_mention_language(instructions: str) -> bool:
        return "language" in instructions.lower()
