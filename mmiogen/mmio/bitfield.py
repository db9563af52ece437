from dataclasses import dataclass, field

from .permissions import Permissions


@dataclass
class Bitfield:
    """ A run of bits inside a register; offset is relative to the register. """
    name: str
    bit_size: int
    offset: int
    permissions: Permissions = field(default_factory=Permissions.default)
    desc: str = None

    def __post_init__(self):
        if self.desc is None:
            self.desc = self.name

    @classmethod
    def default(cls, width:int):
        """ The synthetic field of a register that declares none: all bits, read-write. """
        return cls('value', width, 0)

    def fits(self, width:int) -> bool:
        return self.bit_size >= 1 and self.offset + self.bit_size <= width
