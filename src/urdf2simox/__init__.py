"""
urdf2simox - Convert URDF hand descriptions to Simox robot XML
"""

__version__ = "0.1.0"
