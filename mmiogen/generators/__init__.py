# Helpers shared by the code generators.
#
# The generators expect that the formatting is going to be fine tuned with clang-format,
# black or a similar tool; they only care about producing valid code.

import re
from importlib import resources
from pathlib import Path

from ..mmio import SchemaError

_NON_IDENT = re.compile(r'[^0-9A-Za-z_]')


def sanitize(name:str) -> str:
    """ Replace everything that can't be part of an identifier by an underscore. """
    name = _NON_IDENT.sub('_', name)
    return '_' + name if name[:1].isdigit() else name


def pascal_case(name:str) -> str:
    """ i2c_ctrl -> I2cCtrl """
    words = [w for w in sanitize(name).split('_') if w]
    result = ''.join(w[0].upper() + w[1:].lower() for w in words)
    return '_' + result if result[:1].isdigit() else result


def identifier(name:str, reserved=()) -> str:
    """ Lower case identifier; names clashing with keywords or reserved members get a trailing underscore. """
    ident = sanitize(name).lower()
    return ident + '_' if ident in reserved else ident


def access_tag(permissions) -> str:
    """ Closest access capability of the runtime for a permission. """
    if permissions.is_readable() and permissions.is_writable():
        return 'ReadWrite'
    return 'Read' if permissions.is_readable() else 'Write'


def check_platform(platform):
    """ Every bitfield has to fit in the bus width. """
    for device in platform.devices:
        for register in device.registers:
            for field in register.bitfields:
                if not field.fits(platform.bus_width):
                    raise SchemaError(f"bitfield at offset {field.offset} with width {field.bit_size} "
                                      f"exceeds the {platform.bus_width} bit bus",
                                      f"{device.name}.{register.name}.{field.name}")


def unique_types(registers:list, name):
    """ Assign each register layout of a device a distinct type name.
        Returns a list of (type name, register) pairs. """
    seen = {}
    result = []
    for reg in registers:
        base = name(reg.type_)
        n = seen.get(base, 0)
        seen[base] = n + 1
        result.append((base if n == 0 else f"{base}{n}", reg))
    return result


def resource(name:str) -> str:
    """ Text of a runtime support file shipped with the package. """
    if name.endswith('.py'):
        return resources.files('mmiogen').joinpath(name).read_text()
    return resources.files('mmiogen').joinpath('resources').joinpath(name).read_text()


def comment_block(text:str, marker:str) -> str:
    """ Prefix every line of text with a comment marker. """
    if not text:
        return ''
    return ''.join(f"{marker} {line}".rstrip() + '\n' for line in text.splitlines())


def write(path:Path, text:str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as file:
        file.write(text)
    return path
