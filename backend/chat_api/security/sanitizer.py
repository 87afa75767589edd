"""
Input sanitization for chat payloads.

Rejects:
- Null bytes in strings
- Control characters (except newlines/tabs in message text)
- Path traversal in attachment filenames

Raises ValueError so the helpers can be used inside pydantic validators;
callers outside validators translate it to InvalidArgument.
"""
import re
from typing import Optional


class InputSanitizer:
    """Validates and sanitizes user input."""

    NULL_BYTE_PATTERN = re.compile(r'\x00')
    CONTROL_CHAR_PATTERN = re.compile(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]')  # Except \t=0x09, \n=0x0a, \r=0x0d
    LINE_BREAK_PATTERN = re.compile(r'[\r\n]')

    MAX_ID_LENGTH = 64
    MAX_TEXT_LENGTH = 10000
    MAX_REASON_LENGTH = 2000
    FALLBACK_FILENAME = 'file'

    @staticmethod
    def sanitize_string(value: str, max_length: Optional[int] = None, allow_newlines: bool = False) -> str:
        """
        Sanitize string input.

        Args:
            value: Input string
            max_length: Optional max length
            allow_newlines: Allow \n and \r characters (for message text)

        Returns:
            The unchanged string

        Raises:
            ValueError: If input contains forbidden characters or is too long
        """
        if not isinstance(value, str):
            raise ValueError("Input must be string")

        if InputSanitizer.NULL_BYTE_PATTERN.search(value):
            raise ValueError("Null bytes not allowed")

        if InputSanitizer.CONTROL_CHAR_PATTERN.search(value):
            raise ValueError("Control characters not allowed")

        if not allow_newlines and InputSanitizer.LINE_BREAK_PATTERN.search(value):
            raise ValueError("Line breaks not allowed")

        if max_length and len(value) > max_length:
            raise ValueError(f"Input exceeds max length of {max_length}")

        return value

    @staticmethod
    def sanitize_identifier(value: str) -> str:
        """User and item identifiers: single line, trimmed, bounded."""
        sanitized = InputSanitizer.sanitize_string(value.strip(), max_length=InputSanitizer.MAX_ID_LENGTH)
        if not sanitized:
            raise ValueError("Identifier cannot be empty")
        return sanitized

    @staticmethod
    def sanitize_text(value: str) -> str:
        """Message text (newlines allowed, trailing whitespace per line trimmed)."""
        sanitized = InputSanitizer.sanitize_string(
            value, max_length=InputSanitizer.MAX_TEXT_LENGTH, allow_newlines=True
        )
        lines = sanitized.split('\n')
        return '\n'.join(line.rstrip() for line in lines)

    @staticmethod
    def sanitize_reason(value: str) -> str:
        return InputSanitizer.sanitize_string(
            value.strip(), max_length=InputSanitizer.MAX_REASON_LENGTH, allow_newlines=True
        )

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """Prevent path traversal in attachment names used in storage paths."""
        if not filename or len(filename) > 255:
            raise ValueError("Invalid filename length")

        # Keep only the last path component
        filename = filename.replace('\\', '/').split('/')[-1]

        if filename in ('.', '..'):
            raise ValueError("Path traversal not allowed")

        # Allow word characters in any script, dot, dash, space, parentheses
        filename = re.sub(r'[^\w.\-() ]', '', filename)

        filename = re.sub(r'[ ]{2,}', ' ', filename)
        filename = re.sub(r'[.]{2,}', '.', filename)
        filename = filename.strip(' ')

        if not filename or filename == '.':
            return InputSanitizer.FALLBACK_FILENAME
        if filename.startswith('.'):
            filename = InputSanitizer.FALLBACK_FILENAME + filename

        return filename
