"""Exceptions raised by the decoder."""
from __future__ import annotations


class CTCLibError(Exception):
    pass


class InvalidInput(CTCLibError, ValueError):
    """The log-probability matrix or vocabulary cannot be decoded."""


class InvalidConfiguration(CTCLibError, ValueError):
    """Decoder options are out of range."""


class LanguageModelError(CTCLibError, RuntimeError):
    """A language model call failed while decoding."""


class DecoderStateError(CTCLibError, RuntimeError):
    """A decode session was driven out of order."""
