"""Quote-aware command tokenizer."""

from __future__ import annotations

from dataclasses import dataclass, field

QUOTE_CHARS = ("'", '"')


@dataclass
class RawCommand:
    """An input command line and its tokenization.

    ``quoted[i]`` is True when every character of ``tokens[i]`` came from
    inside a quoted span.
    """

    raw: str
    tokens: list[str] = field(default_factory=list)
    quoted: list[bool] = field(default_factory=list)

    @property
    def command(self) -> str:
        return self.tokens[0].lower() if self.tokens else ""

    @property
    def args(self) -> list[str]:
        return self.tokens[1:]

    @property
    def args_quoted(self) -> list[bool]:
        return self.quoted[1:]


def tokenize(command: str) -> RawCommand:
    """Split ``command`` on whitespace outside quotes.

    Quote characters delimit spans and are dropped. A backslash directly
    before a quote character produces that quote literally; no other escape
    sequence is interpreted.
    """
    result = RawCommand(raw=command)
    current: list[str] = []
    all_quoted = True
    quote_char: str | None = None
    i = 0

    def flush() -> None:
        nonlocal all_quoted
        if current:
            result.tokens.append("".join(current))
            result.quoted.append(all_quoted)
            current.clear()
        all_quoted = True

    while i < len(command):
        char = command[i]

        if quote_char is None and char in QUOTE_CHARS:
            quote_char = char
            i += 1
            continue

        if quote_char is not None and char == quote_char:
            quote_char = None
            i += 1
            continue

        if quote_char is None and char.isspace():
            flush()
            i += 1
            continue

        if char == "\\" and i + 1 < len(command) and command[i + 1] in QUOTE_CHARS:
            char = command[i + 1]
            i += 1

        current.append(char)
        if quote_char is None:
            all_quoted = False
        i += 1

    flush()
    return result
