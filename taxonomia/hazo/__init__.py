# -*- coding: utf-8 -*-
"""
Hazo interchange codec.
"""

from .format import HazoFormatError
from .decode import read_hazo, load_hazo, decode_document
from .encode import write_hazo, encode_dataset

__all__ = [
    "HazoFormatError",
    "read_hazo", "load_hazo", "decode_document",
    "write_hazo", "encode_dataset",
]
