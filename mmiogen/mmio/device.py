from dataclasses import dataclass, field


@dataclass
class Device:
    """ A device template: the register map shared by every instance of a type. """
    name: str
    type_: str
    registers: list = field(default_factory=list)
