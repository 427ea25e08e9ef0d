"""
Simox module for urdf2simox - document model, assembly and serialization
"""

from .assembler import DocumentAssembler, HandIdentity
from .emitter import TreeEmitter
from .writer import render_xml, write_xml

__all__ = [
    "DocumentAssembler",
    "HandIdentity",
    "TreeEmitter",
    "render_xml",
    "write_xml"
]
