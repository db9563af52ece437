# Generate a Python package for a platform.
#
# The package holds the register access runtime (zermio.py, copied as is), one module per
# device type and a platform module with the device addresses and interrupt numbers as
# IntEnums. Register classes declare their bitfields as class attributes, so every field
# layout is checked when the module is imported.

import keyword
from pathlib import Path
from string import Template

from . import (access_tag, check_platform, comment_block, identifier, pascal_case,
               resource, unique_types, write)

# members of a generated register class besides its bitfields
RESERVED = frozenset(keyword.kwlist) | {'reg_', 'commit', 'fetch', 'dtype'}
# names taken by the support modules of the package
MODULES = frozenset(keyword.kwlist) | {'platform', 'zermio'}


def _docstring(text:str) -> str:
    return ' '.join(text.split()).replace('\\', '\\\\').replace('"""', '\\"\\"\\"')


class PyFormatter:
    def __init__(self, **keywords):
        self.bitfieldTemplate = Template(keywords.get('bitfield', '\n    $name = BitField($offset, $width, $type, $access)  # $desc'))
        self.registerTemplate = Template(keywords.get('register', '''

class ${name}Reg(RegisterBase):
    """$desc"""
    __slots__ = ()
    dtype = $type
$fields
'''))
        self.memberTemplate = Template(keywords.get('member', '\n        self.$name = ${type}Reg(addr + $offset, bus)'))
        self.deviceTemplate = Template(keywords.get('device', '''

class $name:
    """Registers of a $type device. Use a single instance per device at a time."""

    def __init__(self, addr, bus=None):$members
'''))
        self.headerTemplate = Template(keywords.get('header', '''${prefix}# File was generated, do not edit!
from .zermio import BitField, Read, ReadWrite, RegisterBase, Write, $type
$registers$device'''))
        self.addressTemplate = Template(keywords.get('address', '\n    $name = $address'))
        self.addressesTemplate = Template(keywords.get('addresses', '''

class $name(IntEnum):
    """Addresses for the devices of the type $type."""$entries
'''))
        self.interruptTemplate = Template(keywords.get('interrupt', '\n    $name = $value  # $desc'))
        self.platformTemplate = Template(keywords.get('platform', '''${prefix}# File was generated, do not edit!
from enum import IntEnum

NAME = $platform
BUS_WIDTH = $width
$addresses

class Interrupt(IntEnum):
    """Interrupt numbers."""$interrupts
'''))
        self.initTemplate = Template(keywords.get('init', '''${prefix}# File was generated, do not edit!
from . import platform, zermio
$imports'''))

    def uintType(self, width:int) -> str:
        return f"U{width}"

    def formatRegister(self, name:str, register, width:int) -> str:
        fields = ''
        for f in register.bitfields:
            fields += self.bitfieldTemplate.substitute(name=identifier(f.name, RESERVED), offset=f.offset, width=f.bit_size,
                                                       type=self.uintType(width), access=access_tag(f.permissions),
                                                       desc=' '.join(f.desc.split()))
        return self.registerTemplate.substitute(name=name, desc=_docstring(register.desc), type=self.uintType(width), fields=fields)

    def formatDevice(self, device, width:int, prefix:str='') -> str:
        registers = ''
        members = ''
        for type_name, reg in unique_types(device.registers, pascal_case):
            registers += self.formatRegister(type_name, reg, width)
            for info in reg.info:
                members += self.memberTemplate.substitute(name=identifier(info.name, keyword.kwlist), type=type_name,
                                                          offset=hex(info.offset))
        device_txt = self.deviceTemplate.substitute(name=pascal_case(device.type_), type=device.type_,
                                                    members=members or '\n        pass')
        return self.headerTemplate.substitute(prefix=prefix, type=self.uintType(width), registers=registers, device=device_txt)

    def formatPlatform(self, platform, prefix:str='') -> str:
        addresses = ''
        for type_name, instances in platform.device_types.items():
            entries = ''.join(self.addressTemplate.substitute(name=identifier(d.name, keyword.kwlist).upper(), address=d.address)
                              for d in instances)
            addresses += self.addressesTemplate.substitute(name=pascal_case(type_name), type=type_name, entries=entries)
        interrupts = ''.join(self.interruptTemplate.substitute(name=identifier(i.name, keyword.kwlist).upper(), value=i.value,
                                                               desc=' '.join(i.description.split()))
                             for i in platform.interrupts)
        return self.platformTemplate.substitute(prefix=prefix, platform=repr(platform.name), width=platform.bus_width,
                                                addresses=addresses, interrupts=interrupts or '\n    pass')

    def formatInit(self, platform, prefix:str='') -> str:
        imports = ''.join(f"from .{identifier(d.type_, MODULES)} import {pascal_case(d.type_)}\n" for d in platform.devices)
        return self.initTemplate.substitute(prefix=prefix, imports=imports)


def generate(platform, out_dir:Path, file_header:str='', fmt:PyFormatter=None):
    """ Write the package into out_dir. Returns the paths written. """
    check_platform(platform)
    fmt = fmt or PyFormatter()
    out_dir = Path(out_dir)
    prefix = comment_block(file_header, '#')

    written = []
    for device in platform.devices:
        path = out_dir / (identifier(device.type_, MODULES) + '.py')
        written.append(write(path, fmt.formatDevice(device, platform.bus_width, prefix)))
    written.append(write(out_dir / 'platform.py', fmt.formatPlatform(platform, prefix)))
    written.append(write(out_dir / 'zermio.py', resource('zermio.py')))
    written.append(write(out_dir / '__init__.py', fmt.formatInit(platform, prefix)))
    return written
