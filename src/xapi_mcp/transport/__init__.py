"""Transport layer: the TLS socket connection to the xAPI endpoint."""

from .tls_connection import ConnectionState, EndpointInfo, XapiConnection
