"""
Gantry Transport - ASGI request/response handles and the Express-style router.
"""

from .request import Request, parse_query_string
from .response import Response, dumps
from .router import Router, Next, Layer, compile_path, HTTP_METHODS

__all__ = [
    "Request",
    "Response",
    "Router",
    "Next",
    "Layer",
    "compile_path",
    "parse_query_string",
    "dumps",
    "HTTP_METHODS",
]
