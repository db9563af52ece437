"""
Register access runtime for generated register maps.

This file is copied unmodified next to the generated device modules, so it only
depends on the standard library.

A Register keeps a cached copy of one hardware register. Bitfields never touch the
hardware: they read and modify the cache. The hardware is only accessed by an
explicit fetch() (one load into the cache) or commit() (one store of the cache),
which lets several field updates go out as a single bus write:

    uart.ctrl.fetch()
    uart.ctrl.enable.set()
    uart.ctrl.baud.write(0x1a)
    uart.ctrl.commit()

A register is in one of three states: unsynced (cache is zero, nothing fetched),
synced (cache equals the hardware) or dirty (fields were modified since the last
fetch/commit). Nothing moves between them implicitly.

There is no locking. A register must have a single owner for the whole
fetch/modify/commit sequence; sharing one between threads or interrupt handlers
needs external synchronization.

The width and offset of a BitField are checked once, when it is created. Generated
code creates them in class bodies, so a bad field fails at import time.
"""

import mmap
import os
from typing import NamedTuple


class UInt(NamedTuple):
    """ Unsigned element type of a register. """
    bits: int

    @property
    def max(self) -> int:
        return (1 << self.bits) - 1


U8 = UInt(8)
U16 = UInt(16)
U32 = UInt(32)
U64 = UInt(64)


class Read:
    """ Access tag: the field can be read. """


class Write:
    """ Access tag: the field can be written. """


class ReadWrite:
    """ Access tag: the field can be read and written. """


# ============================================================================
# Buses
# ============================================================================

_FORMATS = { 8: 'B', 16: 'H', 32: 'I', 64: 'Q' }


class MemoryBus:
    """Word access to a writable buffer that starts at address `base`.

    Every load and store is one aligned access of the register width, done through a
    memoryview cast so it is never split into byte copies.
    """

    def __init__(self, buffer, base:int=0):
        self.base = base
        self._views = {}
        self._buffer = memoryview(buffer)

    def _slot(self, addr:int, dtype:UInt):
        size = dtype.bits // 8
        offset = addr - self.base
        if offset % size:
            raise ValueError(f"unaligned {dtype.bits} bit access at {addr:#x}")
        if offset < 0 or offset + size > len(self._buffer):
            raise ValueError(f"address {addr:#x} outside of the bus window")
        view = self._views.get(dtype.bits)
        if view is None:
            view = self._views[dtype.bits] = self._buffer.cast(_FORMATS[dtype.bits])
        return view, offset // size

    def load(self, addr:int, dtype:UInt) -> int:
        view, idx = self._slot(addr, dtype)
        return view[idx]

    def store(self, addr:int, dtype:UInt, value:int):
        view, idx = self._slot(addr, dtype)
        view[idx] = value & dtype.max


class DevMemBus(MemoryBus):
    """ Physical memory window mapped from /dev/mem (or any other mappable file). """

    def __init__(self, base:int, size:int, path:str='/dev/mem'):
        fd = os.open(path, os.O_RDWR | os.O_SYNC)
        try:
            self._map = mmap.mmap(fd, size, mmap.MAP_SHARED, mmap.PROT_READ | mmap.PROT_WRITE, offset=base)
        finally:
            os.close(fd)
        super().__init__(self._map, base)

    def close(self):
        for view in self._views.values():
            view.release()
        self._views.clear()
        self._buffer.release()
        self._map.close()


_bus = None


def attach(bus):
    """ Set the bus used by registers that were not given one. Returns the previous bus. """
    global _bus
    previous, _bus = _bus, bus
    return previous


def attached():
    return _bus


# ============================================================================
# Registers
# ============================================================================

class Register:
    """ Cached view of one hardware register. """

    __slots__ = ('addr', 'dtype', 'cache', 'bus')

    def __init__(self, addr:int, dtype:UInt=U32, bus=None):
        self.addr = addr
        self.dtype = dtype
        self.cache = 0
        self.bus = bus

    def _bus(self):
        bus = self.bus if self.bus is not None else _bus
        if bus is None:
            raise RuntimeError("no bus attached, call zermio.attach() first")
        return bus

    def commit(self):
        """ Store the cache into the hardware register. Never reads. """
        self._bus().store(self.addr, self.dtype, self.cache)

    def fetch(self):
        """ Load the hardware register into the cache. Never writes. """
        self.cache = self._bus().load(self.addr, self.dtype) & self.dtype.max
        return self

    def __repr__(self):
        return f"Register({self.addr:#x}, cache={self.cache:#x})"


class BitField:
    """Layout of a field: offset, width, element type and access tag.

    Creating one validates the layout. Binding it to a Register gives a view whose
    class only has the operations the access tag allows. Used as a class attribute of
    a register class, attribute access binds it to the instance's `reg_`.
    """

    __slots__ = ('offset', 'width', 'dtype', 'access', 'name', '_view')

    def __init__(self, offset:int, width:int, dtype:UInt=U32, access=ReadWrite):
        if width < 1 or width > dtype.bits:
            raise TypeError(f"bitfield width {width} exceeds {dtype.bits} bit type")
        if offset < 0 or offset + width > dtype.bits:
            raise TypeError(f"bitfield at offset {offset} with width {width} exceeds {dtype.bits} bit type")
        view = _VIEWS.get((access, width == 1))
        if view is None:
            raise TypeError(f"unknown access tag {access!r}")
        self.offset = offset
        self.width = width
        self.dtype = dtype
        self.access = access
        self.name = None
        self._view = view

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, obj, owner=None):
        if obj is None:
            return self
        return self.bind(obj.reg_)

    def __set__(self, obj, value):
        raise AttributeError(f"bitfield '{self.name}' can't be replaced, use write()")

    def mask(self) -> int:
        if self.width == self.dtype.bits:
            return self.dtype.max
        return ((1 << self.width) - 1) << self.offset

    def max(self) -> int:
        if self.width == self.dtype.bits:
            return self.dtype.max
        return (1 << self.width) - 1

    def in_range(self, value:int) -> bool:
        """ Whether value fits in the field without being truncated. """
        return 0 <= value <= self.max()

    def bind(self, reg:Register):
        return self._view(self, reg)


class _View:
    __slots__ = ('field', 'reg')

    def __init__(self, field:BitField, reg:Register):
        self.field = field
        self.reg = reg

    def mask(self) -> int:
        return self.field.mask()

    def max(self) -> int:
        return self.field.max()

    def in_range(self, value:int) -> bool:
        return self.field.in_range(value)

    def __repr__(self):
        f = self.field
        return f"<{type(self).__name__} {f.name or '?'} [{f.offset + f.width - 1}:{f.offset}]>"


class _Readable(_View):
    __slots__ = ()

    def get(self) -> int:
        return (self.reg.cache & self.mask()) >> self.field.offset

    def fetch(self):
        self.reg.fetch()
        return self


class _ReadableBit(_Readable):
    __slots__ = ()

    def is_set(self) -> bool:
        return (self.reg.cache & self.mask()) == self.mask()


class _Writable(_View):
    __slots__ = ()

    def clear(self):
        self.reg.cache &= ~self.mask() & self.field.dtype.max
        return self

    def write(self, value:int):
        self.clear()
        self.reg.cache |= (value << self.field.offset) & self.mask()
        return self

    def write_mask(self, value:int):
        """ Merge value into the field: only the bits value sets are cleared and set again,
            the other bits of the field keep what the cache holds. """
        bits = (value << self.field.offset) & self.mask()
        self.reg.cache &= ~bits & self.field.dtype.max
        self.reg.cache |= bits
        return self

    def commit(self):
        self.reg.commit()


class _WritableBit(_Writable):
    __slots__ = ()

    def set(self):
        self.reg.cache |= self.mask()
        return self

    def reset(self):
        return self.clear()

    def toggle(self):
        self.reg.cache ^= self.mask()
        return self

    def assign(self, bit:bool):
        self.clear()
        if bit:
            self.reg.cache |= self.mask()
        return self


class ReadField(_Readable):
    __slots__ = ()


class ReadBit(_ReadableBit):
    __slots__ = ()


class WriteField(_Writable):
    __slots__ = ()


class WriteBit(_WritableBit):
    __slots__ = ()


class ReadWriteField(_Readable, _Writable):
    __slots__ = ()


class ReadWriteBit(_ReadableBit, _WritableBit):
    __slots__ = ()


_VIEWS = {
    (Read, False): ReadField,
    (Read, True): ReadBit,
    (Write, False): WriteField,
    (Write, True): WriteBit,
    (ReadWrite, False): ReadWriteField,
    (ReadWrite, True): ReadWriteBit,
}


class RegisterBase:
    """Base of generated register classes.

    Bitfields are declared as class attributes; the register itself is kept in `reg_`
    so it never collides with a field name.
    """

    __slots__ = ('reg_',)
    dtype = U32

    def __init__(self, addr:int, bus=None):
        self.reg_ = Register(addr, self.dtype, bus)

    def commit(self):
        self.reg_.commit()

    def fetch(self):
        self.reg_.fetch()
        return self

    def __repr__(self):
        return f"{type(self).__name__}({self.reg_.addr:#x}, cache={self.reg_.cache:#x})"
