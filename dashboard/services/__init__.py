"""
Dashboard view services.
"""
from .views import (
    build_document_view,
    build_budget_view,
    render_document_html,
    DEFAULT_DOCUMENT_TEMPLATE,
)

__all__ = [
    "build_document_view",
    "build_budget_view",
    "render_document_html",
    "DEFAULT_DOCUMENT_TEMPLATE",
]
