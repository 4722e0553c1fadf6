"""
Client streaming: part protocol and the response assembler.
"""

from .assembler import ResponseAssembler
from .protocol import DONE, encode_sse

__all__ = ["ResponseAssembler", "DONE", "encode_sse"]
