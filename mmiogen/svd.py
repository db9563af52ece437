# Convert a SVD file into the platform IR.
#
# Reading happens in two steps. xmltodict turns the XML into nested dicts, and the
# collate* functions normalize that tree in place: repeated elements become lists,
# numbers become ints, field positions become bitOffset/bitWidth. SvdConverter then
# walks the collated tree and builds the IR, expanding register arrays and cluster
# arrays and resolving derived peripherals.

import re
from xml.parsers.expat import ExpatError

import xmltodict

from .mmio import (Bitfield, Conversion, Device, Interrupt, Permissions, Platform,
                   Register, RegisterInfo, SchemaError, Unsupported)
from .mmio.register import fields_or_default
from .transform import cluster_name, device_name, dim_indices, peripheral_type

_BIT_RANGE = re.compile(r'^\[\s*(\w+)\s*:\s*(\w+)\s*\]$')


def _safe_int(s, path=None):
    """ Parse an integer literal: decimal, 0x hex, #binary, with or without leading zeros. """
    if isinstance(s, int):
        return s
    try:
        v = re.sub(r'^#', '0b', str(s).strip().lower())
        try:
            return int(v, base=0)
        except ValueError:
            # int(base=0) rejects leading zeros on decimals ('072', '00000010')
            return int(v.lstrip('0') or '0')
    except ValueError:
        raise SchemaError(f"malformed number '{s}'", path) from None


def parse(filename:str):
    """ read a SVD file and return it as a data structure """
    # bytes, so the parser honours the encoding declared in the XML prolog
    with open(filename, 'rb') as file:
        return parseString(file.read())


def parseString(text):
    try:
        return xmltodict.parse(text)
    except ExpatError as e:
        raise SchemaError(f"malformed XML: {e}") from None


def toNumber(tbl:dict, keys:list, path:str=None):
    """ In a table, in-place convert all listed keys into a number. """
    for k in keys:
        if tbl.get(k) is not None:
            tbl[k] = _safe_int(tbl[k], f"{path}.{k}" if path else k)


def asArray(tbl):
    """ return as an array of tables, even if tbl is only a single table
        if tbl is already an array, return it. If it is associative, wrap it in an array. """
    return tbl if isinstance(tbl, list) else ([ tbl ] if tbl else [])


def findNamedEntry(array:list, name:str):
    """ Go through an array and try to find an entry with the given name.
        Returns None if there is none. """
    for e in array:
        if e.get('name') == name:
            return e


def require(tbl:dict, key:str, path:str):
    """ Fetch a mandatory element, failing with the location if it is absent. """
    value = tbl.get(key)
    if value is None or value == '':
        raise SchemaError(f"missing required element '{key}'", path)
    return value


def collateInterrupts(peripheral:dict, path:str):
    """ Go through the interrupts of this peripheral and collate them into an array. """
    peripheral['interrupts'] = asArray(peripheral.get('interrupt'))
    if 'interrupt' in peripheral:
        del peripheral['interrupt']
    for i in peripheral['interrupts']:
        name = require(i, 'name', path)
        i['value'] = _safe_int(require(i, 'value', f"{path}.{name}"), f"{path}.{name}")


def collateFields(fields:dict, path:str):
    """ Go through the register and collate the fields into an array
        The bit ranges are converted to bitOffset/bitWidth style for uniformity
        The list of fields is returned sorted according to bitOffset. """
    flds = []
    for f in asArray((fields or {}).get('field')):
        fpath = f"{path}.{require(f, 'name', path)}"
        if f.get('bitRange') is not None:
            m = _BIT_RANGE.match(f['bitRange'].strip())
            if not m:
                raise SchemaError(f"malformed bitRange '{f['bitRange']}'", fpath)
            f['msb'], f['lsb'] = m.group(1, 2)
            del f['bitRange']
        if f.get('msb') is not None and f.get('lsb') is not None:
            msb, lsb = _safe_int(f['msb'], fpath), _safe_int(f['lsb'], fpath)
            if msb < lsb:
                raise SchemaError(f"msb {msb} below lsb {lsb}", fpath)
            f['bitOffset'] = lsb
            f['bitWidth'] = msb - lsb + 1
            del f['msb']
            del f['lsb']
        if f.get('bitOffset') is None:
            raise SchemaError("missing bit position", fpath)
        f['bitWidth'] = f.get('bitWidth') or 1
        toNumber(f, [ "bitOffset", "bitWidth", "dim", "dimIncrement" ], fpath)
        flds.append(f)
    flds.sort(key=lambda x: x['bitOffset'])
    return flds if flds else None   # return None instead of empty list


def collateRegisters(cluster:dict, path:str):
    """ Go through the cluster and collate the registers.
        The registers section of a peripheral is a cluster and follows its structure.
        On input, a cluster may contain an array named "register" and/or an array named "cluster".
        The latter contains all clusters at that level, and each of them gets processed recursively.
        The register list is returned sorted for increasing addresses.
        In the returned list, the distinction between a cluster and a single register is through
        the presence or absence of an entry "registers". """
    cluster = cluster or {}
    reg, clu = asArray(cluster.get('register')), asArray(cluster.get('cluster'))
    regs = []
    ints = [ "addressOffset", "size", "resetMask", "resetValue", "dim", "dimIncrement" ]
    for r in reg:
        rpath = f"{path}.{require(r, 'name', path)}"
        require(r, 'addressOffset', rpath)
        toNumber(r, ints, rpath)
        r['fields'] = collateFields(r.get('fields'), rpath)
        regs.append(r)
    for c in clu:
        cpath = f"{path}.{require(c, 'name', path)}"
        require(c, 'addressOffset', cpath)
        toNumber(c, ints, cpath)
        c['registers'] = collateRegisters(c, cpath)
        for k in ('register', 'cluster'):
            c.pop(k, None)
        regs.append(c)
    regs.sort(key=lambda x: x['addressOffset'])
    return regs


def collatePeripherals(device:dict):
    """ go through the device and collate the peripherals into an array
        the data structure is modified in place. """
    per = device.get('peripherals') or {}
    device['peripherals'] = asArray(per.get('peripheral'))
    for p in device['peripherals']:
        path = require(p, 'name', 'peripherals')
        toNumber(p, [ "baseAddress", "size", "resetMask", "resetValue", "dim", "dimIncrement" ], path)
        p['registers'] = collateRegisters(p.get('registers'), path)
        collateInterrupts(p, path)


def collateDevice(root:dict):
    """ go through the device and collate all its information
        the data structure is modified in place. """
    if not isinstance(root, dict) or not isinstance(root.get('device'), dict):
        raise SchemaError("not a SVD document, <device> element missing")
    device = root['device']
    require(device, 'name', 'device')
    toNumber(device, [ "addressUnitBits", "width", "size", "resetMask", "resetValue" ], device['name'])
    collatePeripherals(device)
    return device


def _description(tbl:dict):
    desc = tbl.get('description')
    return ' '.join(desc.split()) if isinstance(desc, str) and desc.strip() else None


class SvdConverter:
    """Builds a Platform out of a collated SVD device.

    Constructs the IR can't represent raise Unsupported; they are recorded in warnings
    and skipped, unless strict is set in which case they abort like any SchemaError.
    """

    def __init__(self, strict:bool=False, types:dict=None, skip=()):
        self.strict = strict
        self.types = dict(types or {})
        self.skip = set(skip)
        self.warnings = []

    def _recover(self, exc:Unsupported):
        if self.strict:
            raise exc
        self.warnings.append(str(exc))

    def convert(self, device:dict) -> Conversion:
        self.width = device.get('width') or 32
        self.device = device
        platform = Platform(device['name'], self.width)
        peripherals = device['peripherals']

        for per in peripherals:
            if per['name'] in self.skip:
                continue
            try:
                dev = self.convertPeripheral(per, peripherals)
            except Unsupported as e:
                self._recover(e)
                continue

            if per.get('baseAddress') is None:
                raise SchemaError("missing required element 'baseAddress'", dev.name)
            platform.add_device_addr(dev.type_, dev.name, per['baseAddress'])

            for i in per.get('interrupts', []):
                platform.interrupts.append(Interrupt(f"{dev.name}_{i['name']}", i['value'], _description(i)))

            # A device without registers is an alias of a derived type, it has no template.
            if not dev.registers:
                continue
            if platform.find_device(dev.type_):
                self._recover(Unsupported(f"redefines the registers of type '{dev.type_}', keeping the first definition", dev.name))
                continue
            platform.devices.append(dev)
        return Conversion(platform, self.warnings)

    def peripheralType(self, per:dict, peripherals:list, seen=()):
        """ Type of a peripheral: config override, derivation, headerStructName, own name. """
        name = per['name']
        if name in self.types:
            return self.types[name]
        base = per.get('@derivedFrom')
        if base:
            if base in seen:
                raise SchemaError(f"circular derivedFrom '{base}'", name)
            entry = findNamedEntry(peripherals, base)
            if entry is None:
                return peripheral_type(base)
            return self.peripheralType(entry, peripherals, seen + (name,))
        if per.get('headerStructName'):
            return peripheral_type(per['headerStructName'])
        return peripheral_type(name)

    def convertPeripheral(self, per:dict, peripherals:list) -> Device:
        name = device_name(per['name'])
        if per.get('dim') is not None:
            raise Unsupported("peripheral arrays are not supported", name)
        dev = Device(name, self.peripheralType(per, peripherals))
        access = per.get('access') or self.device.get('access')
        for reg in per['registers']:
            try:
                dev.registers.extend(self.convertEntry(reg, per['registers'], name, access))
            except Unsupported as e:
                self._recover(e)
        return dev

    def convertEntry(self, reg:dict, siblings:list, path:str, access:str):
        """ Convert one entry of a register list: a register, a register array or a cluster. """
        if 'registers' not in reg:
            return [self.convertRegister(reg, siblings, path, access)]

        cpath = f"{path}.{reg['name']}"
        for child in reg['registers']:
            if 'registers' in child:
                raise SchemaError("clusters nested deeper than one level are not supported", f"{cpath}.{child['name']}")

        registers = []
        if reg.get('dim') is None:
            # plain cluster: flatten it into the peripheral, prefixing the names
            for child in reg['registers']:
                r = self.convertRegister(child, reg['registers'], cpath, access, reg['addressOffset'])
                for info in r.info:
                    info.name = cluster_name(reg['name'], '', info.name)
                registers.append(r)
            return registers

        increment = require(reg, 'dimIncrement', cpath)
        labels = dim_indices(reg['dim'], reg.get('dimIndex'), cpath)
        for child in reg['registers']:
            if child.get('dim') is not None:
                raise Unsupported("register arrays inside cluster arrays are not supported", f"{cpath}.{child['name']}")
            r = self.convertRegister(child, reg['registers'], cpath, access, reg['addressOffset'])
            registers.append(expand(r, reg['name'], labels, increment))
        return registers

    def convertRegister(self, reg:dict, siblings:list, path:str, access:str, base:int=0) -> Register:
        rpath = f"{path}.{reg['name']}"
        access = reg.get('access') or access
        fields = reg['fields']
        if fields is None and reg.get('@derivedFrom'):
            origin = findNamedEntry(siblings, reg['@derivedFrom'])
            if origin is None or 'registers' in origin:
                raise SchemaError(f"derivedFrom '{reg['@derivedFrom']}' not found", rpath)
            fields = origin['fields']

        bitfields = [self.convertField(f, rpath, access) for f in fields or []]
        register = Register.single(reg['name'], base + reg['addressOffset'],
                                   fields_or_default(bitfields, self.width), desc=_description(reg))
        if reg.get('dim') is None:
            return register
        increment = require(reg, 'dimIncrement', rpath)
        labels = dim_indices(reg['dim'], reg.get('dimIndex'), rpath)
        return expand(register, reg.get('dimName') or reg['name'], labels, increment)

    def convertField(self, field:dict, path:str, access:str) -> Bitfield:
        fpath = f"{path}.{field['name']}"
        if field.get('dim') is not None:
            raise Unsupported("field arrays are not supported", fpath)
        token = field.get('access') or access
        perms = Permissions.from_source_token(token, fpath) if token else Permissions.default()
        return Bitfield(field['name'], field['bitWidth'], field['bitOffset'], perms, _description(field))


def expand(register:Register, base:str, labels:list, increment:int) -> Register:
    """ Turn a single register into one RegisterInfo per array element.
        Element i lives at the first element's offset plus i times the increment. """
    first = register.info[0]
    type_name = first.type_
    desc = first.desc if first.desc != first.name else None
    register.info = [
        RegisterInfo(cluster_name(base, label, type_name), first.offset + increment * i, type_name, desc)
        for i, label in enumerate(labels)
    ]
    return register


def to_platform(root:dict, **options) -> Conversion:
    """ Collate a parsed SVD document and convert it into a Platform. """
    return SvdConverter(**options).convert(collateDevice(root))


def load(filename:str, **options) -> Conversion:
    return to_platform(parse(filename), **options)
