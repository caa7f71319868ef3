"""Separation — remote vocal/instrumental split."""

from safi.separation.client import SeparationClient, encode_data_uri
from safi.separation.output import OutputShape, SeparationOutput, parse_output

__all__ = [
    "OutputShape",
    "SeparationClient",
    "SeparationOutput",
    "encode_data_uri",
    "parse_output",
]
