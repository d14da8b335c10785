from __future__ import annotations


LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "en-US": "American English",
    "en-GB": "British English",
    "en-AU": "Australian English",
    "en-CA": "Canadian English",
    "pt": "Portuguese",
    "pt-BR": "Brazilian Portuguese",
    "pt-PT": "European Portuguese",
    "es": "Spanish",
    "es-ES": "European Spanish",
    "es-MX": "Mexican Spanish",
    "es-AR": "Argentinian Spanish",
    "fr": "French",
    "fr-FR": "French",
    "fr-CA": "Canadian French",
    "fr-BE": "Belgian French",
    "fr-CH": "Swiss French",
    "de": "German",
    "de-DE": "German",
    "de-AT": "Austrian German",
    "de-CH": "Swiss German",
    "it": "Italian",
    "it-IT": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "zh-CN": "Simplified Chinese",
    "zh-TW": "Traditional Chinese",
    "zh-HK": "Hong Kong Chinese",
    "ru": "Russian",
    "nl": "Dutch",
    "nl-BE": "Belgian Dutch",
    "pl": "Polish",
    "sv": "Swedish",
    "no": "Norwegian",
    "da": "Danish",
    "fi": "Finnish",
    "cs": "Czech",
    "sk": "Slovak",
    "hu": "Hungarian",
    "ro": "Romanian",
    "bg": "Bulgarian",
    "el": "Greek",
    "uk": "Ukrainian",
    "sr": "Serbian",
    "sr-Latn": "Serbian (Latin script)",
    "hr": "Croatian",
    "tr": "Turkish",
    "ar": "Arabic",
    "ar-SA": "Saudi Arabic",
    "ar-EG": "Egyptian Arabic",
    "he": "Hebrew",
    "fa": "Persian",
    "hi": "Hindi",
    "bn": "Bengali",
    "th": "Thai",
    "vi": "Vietnamese",
    "id": "Indonesian",
    "ms": "Malay",
}


def language_name(code: str) -> str:
    if code in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[code]
    base = code.split("-", 1)[0].split("_", 1)[0]
    name = LANGUAGE_NAMES.get(base) or LANGUAGE_NAMES.get(base.lower())
    if name and base != code:
        return f"{name} ({code})"
    return name or code
