"""Supplier (1C Balance API) integration."""

from .transport import SupplierTransport, load_client_ssl_context

__all__ = ["SupplierTransport", "load_client_ssl_context"]
