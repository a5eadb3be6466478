"""State machine over the node's startup output."""

import re
from enum import Enum, auto
from typing import Callable

import structlog

from .exceptions import KeyParseError
from .keys import KeyPair

logger = structlog.get_logger()

KEYS_HEADER_MARKER = "Private Keys"
READY_MARKER = "Listening on"

# "(3) 0x5de4...365a" - index in parens, then the key
KEY_LINE_PATTERN = re.compile(r"^\((?P<index>\d+)\)\s+(?P<payload>\S*)\s*$")


class ParserState(Enum):
    """Startup output scanner states."""

    AWAITING_KEYS_HEADER = auto()  # Before the "Private Keys" section
    COLLECTING_KEYS = auto()  # Inside the "Private Keys" section
    READY = auto()  # Node is listening; terminal


Matcher = Callable[[str], bool]
Handler = Callable[["AnnouncementParser", str], ParserState]


def _is_ready_line(line: str) -> bool:
    return READY_MARKER in line


def _is_keys_header(line: str) -> bool:
    return KEYS_HEADER_MARKER in line


def _is_key_line(line: str) -> bool:
    return line.startswith("(")


class AnnouncementParser:
    """Single-pass scanner for key announcements and the ready signal.

    Feed lines in order with ``feed``. Rules in ``GLOBAL_RULES`` are tried on
    every line before the rules for the current state; the first matching rule
    wins and lines matching nothing are ignored.
    """

    def __init__(self) -> None:
        self._state = ParserState.AWAITING_KEYS_HEADER
        self._keys: list[KeyPair] = []
        self._line_number = 0

    @property
    def state(self) -> ParserState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == ParserState.READY

    @property
    def keys(self) -> tuple[KeyPair, ...]:
        """Keys announced so far, in line order."""
        return tuple(self._keys)

    def feed(self, line: str) -> ParserState:
        """Consume one line of output.

        Args:
            line: A line of startup output; trailing newline is optional.

        Returns:
            State after the line was consumed.

        Raises:
            KeyParseError: If a key line's payload is not a valid secret key.
        """
        if self._state == ParserState.READY:
            return self._state

        self._line_number += 1
        line = line.rstrip("\r\n")

        for matches, handle in (*GLOBAL_RULES, *TRANSITIONS.get(self._state, ())):
            if matches(line):
                self._state = handle(self, line)
                break

        return self._state

    def _on_ready(self, line: str) -> ParserState:
        logger.debug("ready_signal_seen", line_number=self._line_number, keys=len(self._keys))
        return ParserState.READY

    def _on_keys_header(self, line: str) -> ParserState:
        return ParserState.COLLECTING_KEYS

    def _on_key_line(self, line: str) -> ParserState:
        match = KEY_LINE_PATTERN.match(line)
        if match is None:
            raise KeyParseError(self._line_number, line, "not of the form '(<index>) <hex>'")

        try:
            key = KeyPair.from_hex(match.group("payload"))
        except ValueError as e:
            raise KeyParseError(self._line_number, line, str(e)) from e

        self._keys.append(key)
        logger.debug(
            "key_announced",
            index=int(match.group("index")),
            address=key.address,
        )
        return self._state


GLOBAL_RULES: tuple[tuple[Matcher, Handler], ...] = (
    (_is_ready_line, AnnouncementParser._on_ready),
)

TRANSITIONS: dict[ParserState, tuple[tuple[Matcher, Handler], ...]] = {
    ParserState.AWAITING_KEYS_HEADER: (
        (_is_keys_header, AnnouncementParser._on_keys_header),
    ),
    ParserState.COLLECTING_KEYS: (
        (_is_key_line, AnnouncementParser._on_key_line),
    ),
}
