"""Shell-style variable expansion of instruction arguments."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Sequence
from typing import Optional

ESCAPE_TOKEN = "\\"
_SPECIAL_PARAMS = frozenset("@*#?-$!0")
_REMOTE_URL = re.compile(r"^https?://")


class ExpansionError(ValueError):
    """A word could not be expanded."""


class _Scanner:
    def __init__(self, text: str):
        self._text = text
        self._pos = 0

    def peek(self) -> Optional[str]:
        return self._text[self._pos] if self._pos < len(self._text) else None

    def next(self) -> Optional[str]:
        ch = self.peek()
        if ch is not None:
            self._pos += 1
        return ch


class _Word:
    def __init__(self, text: str, envs: Sequence[str], escape: str):
        self.scanner = _Scanner(text)
        self.envs = envs
        self.escape = escape

    def process_stop_on(self, stop: Optional[str]) -> str:
        result = []
        handlers = {
            "'": self.process_single_quote,
            '"': self.process_double_quote,
            "$": self.process_dollar,
        }
        while (ch := self.scanner.peek()) is not None:
            if stop is not None and ch == stop:
                self.scanner.next()
                break
            handler = handlers.get(ch)
            if handler is not None:
                result.append(handler())
                continue
            ch = self.scanner.next()
            if ch == self.escape:
                ch = self.scanner.next()
                if ch is None:
                    break
            result.append(ch)
        return "".join(result)

    def process_single_quote(self) -> str:
        self.scanner.next()
        result = []
        while True:
            ch = self.scanner.next()
            if ch is None:
                raise ExpansionError(
                    "unexpected end of statement while looking for matching single-quote"
                )
            if ch == "'":
                return "".join(result)
            result.append(ch)

    def process_double_quote(self) -> str:
        self.scanner.next()
        result = []
        while True:
            ch = self.scanner.peek()
            if ch is None:
                raise ExpansionError(
                    "unexpected end of statement while looking for matching double-quote"
                )
            if ch == '"':
                self.scanner.next()
                return "".join(result)
            if ch == "$":
                result.append(self.process_dollar())
                continue
            ch = self.scanner.next()
            if ch == self.escape:
                following = self.scanner.peek()
                if following is None:
                    continue
                if following in ('"', "$", self.escape):
                    ch = self.scanner.next()
            result.append(ch)

    def process_dollar(self) -> str:
        self.scanner.next()
        if self.scanner.peek() != "{":
            name = self.process_name()
            return self.get_env(name) if name else "$"
        self.scanner.next()
        ch = self.scanner.peek()
        if ch is None:
            raise ExpansionError("syntax error: missing '}'")
        if ch in "{}:":
            raise ExpansionError("syntax error: bad substitution")
        name = self.process_name()
        ch = self.scanner.next()
        if ch == "}":
            return self.get_env(name)
        if ch == ":":
            modifier = self.scanner.next()
            try:
                word = self.process_stop_on("}")
            except ExpansionError:
                if self.scanner.peek() is None:
                    raise ExpansionError("syntax error: missing '}'") from None
                raise
            value = self.get_env(name)
            if modifier == "+":
                return word if value else value
            if modifier == "-":
                return value if value else word
            raise ExpansionError(f"unsupported modifier ({modifier}) in substitution")
        raise ExpansionError("missing ':' in substitution")

    def process_name(self) -> str:
        name = []
        while (ch := self.scanner.peek()) is not None:
            if not name and ch.isdigit():
                while (digit := self.scanner.peek()) is not None and digit.isdigit():
                    name.append(self.scanner.next())
                return "".join(name)
            if not name and ch in _SPECIAL_PARAMS:
                return self.scanner.next()
            if not (ch.isalpha() or ch.isdigit() or ch == "_"):
                break
            name.append(self.scanner.next())
        return "".join(name)

    def get_env(self, name: str) -> str:
        for env in self.envs:
            key, sep, value = env.partition("=")
            if key == name:
                return value if sep else ""
        return ""


def _process_word(word: str, envs: Sequence[str]) -> str:
    try:
        return _Word(word, envs, ESCAPE_TOKEN).process_stop_on(None)
    except ExpansionError as err:
        raise ExpansionError(f'failed to process "{word}": {err}') from None


def _clean(path: str) -> str:
    cleaned = posixpath.normpath(path) if path else "."
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _is_dest_dir(path: str) -> bool:
    return path.endswith("/") or path == "."


def resolve_environment_replacement(value: str, envs: Sequence[str], is_filepath: bool) -> str:
    """Expand variables in value; file paths are also cleaned, keeping a trailing slash."""
    resolved = _process_word(value, list(envs))
    if not is_filepath:
        return resolved
    resolved = _clean(resolved)
    if _is_dest_dir(value) and not _is_dest_dir(resolved):
        resolved += "/"
    return resolved


def resolve_environment_replacement_list(
    values: Iterable[str], envs: Sequence[str], is_filepath: bool
) -> list[str]:
    """Expand every value; remote URLs are never treated as file paths."""
    envs = list(envs)
    return [
        resolve_environment_replacement(
            value, envs, False if _REMOTE_URL.match(value) else is_filepath
        )
        for value in values
    ]