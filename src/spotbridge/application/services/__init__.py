"""Backend services: paging, object assembly, display metadata and the facade."""

from spotbridge.application.services.display_metadata import extract_display_metadata
from spotbridge.application.services.object_graph import ObjectGraphAssembler
from spotbridge.application.services.pagination import PaginationWalker
from spotbridge.application.services.webapi_backend import WebApiBackend

__all__ = [
    "ObjectGraphAssembler",
    "PaginationWalker",
    "WebApiBackend",
    "extract_display_metadata",
]
