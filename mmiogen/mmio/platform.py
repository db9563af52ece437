from dataclasses import dataclass, field
from typing import NamedTuple


@dataclass
class DeviceAddr:
    name: str
    address: str


@dataclass
class Platform:
    """ Root of the IR.

    device_types maps each device type to its instances, in registration order.
    Every type shows up there, including types that have no template in devices
    because all of their instances are derived.
    """
    name: str
    bus_width: int = 32
    device_types: dict = field(default_factory=dict)
    interrupts: list = field(default_factory=list)
    devices: list = field(default_factory=list)

    def add_device_addr(self, type_name:str, device_name:str, address:int):
        self.device_types.setdefault(type_name, []).append(DeviceAddr(device_name, hex(address)))

    def find_device(self, type_name:str):
        return next((d for d in self.devices if d.type_ == type_name), None)


class Conversion(NamedTuple):
    """ What an adapter hands back: the platform and the warnings for what it skipped. """
    platform: Platform
    warnings: list
