"""
Translators between domain objects and tensors.
"""

from .translator import Translator, TranslatorContext, NoopTranslator

__all__ = [
    "Translator",
    "TranslatorContext",
    "NoopTranslator",
]
