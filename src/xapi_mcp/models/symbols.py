"""Symbol list model for ``getAllSymbols``.

The response schema has not been confirmed against live traffic, so the
projection deliberately refuses to guess at it.
"""

from __future__ import annotations

from ..errors import UnsupportedResponseError
from ..protocol.parser import Output, Success


class AllSymbolsData:
    """Placeholder projection for the ``getAllSymbols`` result."""

    @classmethod
    def from_output(cls, output: Output) -> AllSymbolsData:
        """Always raises until the response schema is confirmed.

        Raises:
            TypeError: If ``output`` is not a ``Success``.
            UnsupportedResponseError: For any ``Success`` output.
        """
        if not isinstance(output, Success):
            raise TypeError(
                f"Symbol data can only be read from a Success output, "
                f"got {type(output).__name__}"
            )
        # TODO: map returnData to typed symbol records once the schema is
        # checked against a recorded getAllSymbols response.
        raise UnsupportedResponseError(
            "getAllSymbols response parsing is not supported yet"
        )
