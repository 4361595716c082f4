"""
HTTP clients for the remote services the pipeline talks to.
"""
from .text import TextClient
from .unsplash import UnsplashClient, UnsplashPhoto

__all__ = [
    "TextClient",
    "UnsplashClient",
    "UnsplashPhoto",
]
