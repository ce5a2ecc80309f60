"""Protocol layer: request lines, response parsing, correlation, and the command table."""

from .framing import build_request, parse_request, parse_response
from .commands import CommandTable, ReservedCommand
from .parser import Dialect, correlate, shape_result
