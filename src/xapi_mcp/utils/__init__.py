"""Small helpers shared by the protocol and model layers."""
