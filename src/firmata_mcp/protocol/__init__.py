"""Protocol layer: 7-bit codec, command builders, incremental decoder and differential encoder."""

from .constants import Command, SysexCommand, PinMode, I2CMode
from .decoder import Decoder
from .encoder import Encoder
