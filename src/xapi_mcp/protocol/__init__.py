"""Protocol layer: message framing, command serialization, and response parsing."""

from .framing import encode_message, MessageAccumulator, TERMINATOR
from .commands import Command, Period
from .parser import Output, parse_output, resolve_output
