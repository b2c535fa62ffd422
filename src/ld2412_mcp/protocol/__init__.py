"""Protocol layer: frame envelopes, command builders, and response parsing."""

from .framing import CommandAckFrame, TargetFrame, build_frame, parse_frame
from .commands import CommandOpcode, build_command
