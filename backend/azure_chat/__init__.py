"""Azure Chat backend: session storage, completion client and local API."""

__version__ = "0.1.0"
