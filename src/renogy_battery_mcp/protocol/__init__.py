"""Protocol layer: request framing, section constants, and response decoding."""

from .framing import build_read_frame, parse_request
from .commands import FunctionCode, Section, build_request
