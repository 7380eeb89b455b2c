"""
Dashboard business logic services.
"""
from .export import (
    build_register_rows,
    write_register_csv,
    write_register_xlsx,
    render_receipt_xml,
    REGISTER_HEADERS,
    DEFAULT_RECEIPT_XML_TEMPLATE,
)

__all__ = [
    "build_register_rows",
    "write_register_csv",
    "write_register_xlsx",
    "render_receipt_xml",
    "REGISTER_HEADERS",
    "DEFAULT_RECEIPT_XML_TEMPLATE",
]
