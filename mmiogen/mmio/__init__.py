# Canonical intermediate representation of a platform's memory mapped devices.
from .bitfield import Bitfield
from .device import Device
from .errors import SchemaError, Unsupported
from .interrupt import Interrupt
from .permissions import Permissions
from .platform import Conversion, DeviceAddr, Platform
from .register import Register, RegisterInfo

__all__ = [
    'Bitfield', 'Conversion', 'Device', 'DeviceAddr', 'Interrupt', 'Permissions', 'Platform',
    'Register', 'RegisterInfo', 'SchemaError', 'Unsupported',
]
