from dataclasses import dataclass, field

from .bitfield import Bitfield


@dataclass
class RegisterInfo:
    """ One addressable instance of a register layout. """
    name: str
    offset: int
    type_: str = None
    desc: str = None

    def __post_init__(self):
        if self.type_ is None:
            self.type_ = self.name.replace('[%s]', '').replace('%s', '')
        if self.desc is None:
            self.desc = self.name


@dataclass
class Register:
    """ A register layout and every place it lives at.

    More than one info record means the layout came out of an array or cluster
    expansion; all instances share the same bitfields. Never empty.
    """
    info: list
    bitfields: list = field(default_factory=list)

    def __post_init__(self):
        if not self.info:
            raise ValueError("a register needs at least one RegisterInfo")

    @classmethod
    def single(cls, name:str, offset:int, bitfields:list, type_name:str=None, desc:str=None):
        return cls([RegisterInfo(name, offset, type_name, desc)], bitfields)

    @property
    def name(self):
        return self.info[0].name

    @property
    def type_(self):
        return self.info[0].type_

    @property
    def desc(self):
        return self.info[0].desc

    def is_readable(self) -> bool:
        return any(f.permissions.is_readable() for f in self.bitfields)

    def is_writable(self) -> bool:
        return any(f.permissions.is_writable() for f in self.bitfields)


def fields_or_default(bitfields:list, width:int):
    """ A register without declared fields gets one field spanning the bus width. """
    return bitfields if bitfields else [Bitfield.default(width)]
