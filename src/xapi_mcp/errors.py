"""Exception hierarchy for the xAPI client.

Every failure inside the client surfaces as a subclass of :class:`XapiError`
and is fatal to the request that raised it. A ``Fail`` response from the
remote side is *not* an error: it is returned to the caller as data.
"""

from __future__ import annotations


class XapiError(Exception):
    """Base class for all client-side failures."""


class ConnectError(XapiError, ConnectionError):
    """The TCP or TLS handshake could not be established."""


class NotConnectedError(ConnectError):
    """A command was issued on a connection that is not open."""


class SendError(XapiError):
    """Writing a serialized command did not complete."""


class SendTimeout(SendError):
    """The write did not drain within the configured send timeout."""


class ReceiveError(XapiError):
    """Reading a response did not complete."""


class ReceiveTimeout(ReceiveError):
    """No terminated message arrived within the configured receive timeout."""


class DecodeError(ReceiveError):
    """Received bytes were not valid UTF-8."""


class RequestCancelled(XapiError):
    """The request's cancellation token was set before a response arrived."""


class ParseError(XapiError):
    """A received message did not decode into any known output shape."""


class SerializeError(XapiError):
    """A command value could not be serialized to JSON."""


class UnsupportedResponseError(XapiError, NotImplementedError):
    """The response schema for this command has not been confirmed yet."""
