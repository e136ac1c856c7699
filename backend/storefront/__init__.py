"""Storefront widget runtime: API client, visitor stores, render loop and widget."""

from .client import StorefrontClient
from .render_loop import CountdownRenderLoop
from .storage import JsonFileStore, MemoryStore
from .widget import BufferContainer, CountdownWidget, WidgetContainer, bootstrap, render_markup

__all__ = [
    "BufferContainer",
    "CountdownRenderLoop",
    "CountdownWidget",
    "JsonFileStore",
    "MemoryStore",
    "StorefrontClient",
    "WidgetContainer",
    "bootstrap",
    "render_markup",
]
