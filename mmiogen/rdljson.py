# Convert the JSON register description (as exported from SystemRDL) into the platform IR.
#
# Document layout, checked against resources/rdljson.schema.yaml:
#   { "name": ..., "devices": [ {"type": "mem", ...} | {"type": "device", ...} ] }
# A device has "name", "type_name", "offsets" (one per instance), "size" and "interfaces";
# an interface has an optional "name" and "regs"; a register has "name", "type_name",
# "desc", "offsets", "fields", "sw_writable", "sw_readable" and "reset"; a field has
# "name", "desc", "lsb", "msb", "sw_writable" and "sw_readable".

import copy
import json

from .mmio import (Bitfield, Conversion, Device, Permissions, Platform, Register,
                   RegisterInfo, SchemaError, Unsupported)
from .mmio.register import fields_or_default
from .schema import describe, problems
from .transform import device_name, peripheral_type

BUS_WIDTH = 32


def loads(text:str):
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaError(f"invalid JSON: {e}") from None


def load(filename:str):
    try:
        with open(filename, 'r', encoding='utf-8') as file:
            return loads(file.read())
    except UnicodeDecodeError as e:
        raise SchemaError(f"not UTF-8 text: {e}") from None


def validate(soc):
    """ Check the shape of a document; only the semantic checks are left to the converter. """
    found = problems('rdljson.schema.yaml', soc)
    if found:
        raise SchemaError(describe(found))
    return soc


def _first_offset(entry:dict):
    if entry.get('type') == 'mem':
        return entry.get('offset', 0)
    return (entry.get('offsets') or [0])[0]


def register_key(reg:dict):
    """ The parts of a register that matter when comparing interfaces.
        Offsets are left out: they only differ by the slot of the interface. """
    return (reg.get('name'), reg.get('fields', []), reg.get('sw_writable'),
            reg.get('sw_readable'), reg.get('reset'))


def interfaces_equal(a:dict, b:dict) -> bool:
    ra, rb = a.get('regs', []), b.get('regs', [])
    return len(ra) == len(rb) and all(register_key(x) == register_key(y) for x, y in zip(ra, rb))


def interface_size(interface:dict) -> int:
    """ Address span of an interface: up to and including its last register. """
    ends = [max(r['offsets']) for r in interface.get('regs', []) if r.get('offsets')]
    return max(ends) + BUS_WIDTH // 8 if ends else 0


def homogeneous_interfaces_to_peripherals(soc:dict):
    """ Split devices whose interfaces are all identical into one device per interface.

    The copies take the device type and live at base + i * interface size; the original
    keeps only its first interface. The device list ends up sorted by address.
    Devices with more than one instance are left alone: their instances already take
    the <name><index> names the copies would get.
    """
    new_devices = []
    for device in soc.get('devices', []):
        if device.get('type') != 'device' or len(device['offsets']) > 1:
            continue
        interfaces = device.get('interfaces') or []
        if len(interfaces) <= 1:
            continue
        first = interfaces[0]
        if not all(interfaces_equal(first, other) for other in interfaces[1:]):
            continue
        size = interface_size(first)
        if not size:
            continue
        base = device['offsets'][0]
        for idx, interface in enumerate(interfaces[1:], start=1):
            new_devices.append({
                'type': 'device',
                'name': interface.get('name') or f"{device['name']}{idx}",
                'type_name': device.get('type_name') or peripheral_type(device['name']),
                'offsets': [base + size * idx],
                'size': size,
                'interfaces': [copy.deepcopy(interface)],
                'split_from': device['name'],
            })
        del interfaces[1:]
    soc['devices'] = sorted(soc.get('devices', []) + new_devices, key=_first_offset)
    return soc


class RdlJsonConverter:
    """ Builds a Platform out of a JSON register description. """

    def __init__(self, strict:bool=False, types:dict=None, skip=(), split_interfaces:bool=True):
        self.strict = strict
        self.types = dict(types or {})
        self.skip = set(skip)
        self.split_interfaces = split_interfaces
        self.warnings = []

    def _recover(self, exc:Unsupported):
        if self.strict:
            raise exc
        self.warnings.append(str(exc))

    def convert(self, soc:dict) -> Conversion:
        soc = copy.deepcopy(validate(soc))
        # overrides go in first so split copies inherit them
        for entry in soc['devices']:
            if entry['name'] in self.types:
                entry['type_name'] = self.types[entry['name']]
        if self.split_interfaces:
            soc = homogeneous_interfaces_to_peripherals(soc)
        platform = Platform(soc['name'], BUS_WIDTH)

        for entry in soc['devices']:
            kind = entry['type']
            if kind == 'mem' or entry['name'] in self.skip:
                continue
            try:
                if kind != 'device':
                    raise Unsupported(f"unknown entry type '{kind}'", entry['name'])
                dev = self.convertDevice(entry)
            except Unsupported as e:
                self._recover(e)
                continue

            offsets = entry['offsets']
            for idx, addr in enumerate(offsets):
                suffix = str(idx) if len(offsets) > 1 else ''
                platform.add_device_addr(dev.type_, dev.name + suffix, addr)
            if not dev.registers:
                continue
            existing = platform.find_device(dev.type_)
            if existing:
                # split copies share the template of the device they came from
                if not entry.get('split_from') and existing.registers != dev.registers:
                    self._recover(Unsupported(f"redefines the registers of type '{dev.type_}', keeping the first definition", dev.name))
                continue
            platform.devices.append(dev)
        return Conversion(platform, self.warnings)

    def deviceType(self, entry:dict):
        name = entry['name']
        if name in self.types:
            return self.types[name]
        if entry.get('type_name'):
            return entry['type_name'].strip().replace(' ', '_').lower()
        return peripheral_type(name)

    def convertDevice(self, entry:dict) -> Device:
        dev = Device(device_name(entry['name']), self.deviceType(entry))
        for interface in entry['interfaces']:
            for reg in interface.get('regs', []):
                try:
                    dev.registers.append(self.convertRegister(reg, dev.name))
                except Unsupported as e:
                    self._recover(e)
        return dev

    def convertRegister(self, reg:dict, path:str) -> Register:
        name = reg['name']
        rpath = f"{path}.{name}"
        offsets = reg['offsets']
        type_name = reg.get('type_name') or None
        desc = reg.get('desc') or None

        bitfields = [self.convertField(f, rpath) for f in reg.get('fields', [])]
        first = name + ('0' if len(offsets) > 1 else '')
        info = [RegisterInfo(first, offsets[0], type_name or name, desc)]
        info.extend(RegisterInfo(f"{name}{idx}", offset, type_name or name, desc)
                    for idx, offset in enumerate(offsets) if idx > 0)
        return Register(info, fields_or_default(bitfields, BUS_WIDTH))

    def convertField(self, field:dict, path:str) -> Bitfield:
        name = field['name']
        fpath = f"{path}.{name}"
        lsb, msb = field['lsb'], field['msb']
        if msb < lsb:
            raise SchemaError(f"msb {msb} below lsb {lsb}", fpath)
        perms = Permissions.from_sw_flags(field.get('sw_writable'), field.get('sw_readable'), fpath)
        return Bitfield(name, msb - lsb + 1, lsb, perms, field.get('desc') or None)


def to_platform(soc:dict, **options) -> Conversion:
    return RdlJsonConverter(**options).convert(soc)
