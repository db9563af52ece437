import pytest

from mmiogen import zermio
from mmiogen.zermio import (U8, U16, U32, BitField, MemoryBus, Read, ReadBit, ReadField,
                            ReadWrite, ReadWriteBit, ReadWriteField, Register, RegisterBase,
                            Write, WriteBit, WriteField)


class CtrlReg(RegisterBase):
    __slots__ = ()
    dtype = U32

    en = BitField(0, 1, U32, ReadWrite)
    mode = BitField(4, 4, U32, ReadWrite)
    baud = BitField(8, 8, U32, Write)
    busy = BitField(31, 1, U32, Read)


@pytest.fixture
def bus():
    return MemoryBus(bytearray(16), base=0x1000)


def words(bus):
    return list(bus._buffer.cast('I'))


@pytest.mark.parametrize("offset, width", [(0, 1), (4, 4), (3, 28), (31, 1), (0, 31)])
def test_mask_and_max(offset, width):
    field = BitField(offset, width)
    assert field.mask() == ((1 << width) - 1) << offset
    assert field.max() == (1 << width) - 1


def test_full_width_mask():
    field = BitField(0, 32)
    assert field.mask() == 0xffffffff
    assert field.max() == 0xffffffff
    assert BitField(0, 8, U8).mask() == 0xff


@pytest.mark.parametrize("width, value, expected", [
    (4, 0, True),
    (4, 15, True),
    (4, 16, False),
    (4, -1, False),
    (1, 1, True),
    (1, 2, False),
    (32, 0xffffffff, True),
    (32, 0x100000000, False),
])
def test_in_range(width, value, expected):
    assert BitField(0, width).in_range(value) is expected


def test_in_range_on_view():
    reg = CtrlReg(0x1000, MemoryBus(bytearray(16), base=0x1000))
    assert reg.mode.in_range(0xf)
    assert not reg.mode.in_range(0x10)
    assert reg.busy.in_range(1)


@pytest.mark.parametrize("offset, width, dtype", [
    (0, 33, U32),
    (0, 0, U32),
    (30, 4, U32),
    (0, 9, U8),
    (12, 8, U16),
    (-1, 2, U32),
])
def test_layout_checked_on_creation(offset, width, dtype):
    with pytest.raises(TypeError):
        BitField(offset, width, dtype)


def test_bad_field_fails_class_creation():
    with pytest.raises(TypeError):
        class BadReg(RegisterBase):
            __slots__ = ()
            wide = BitField(16, 17)


def test_unknown_access_tag():
    with pytest.raises(TypeError):
        BitField(0, 1, U32, object)


@pytest.mark.parametrize("access, width, view", [
    (Read, 4, ReadField),
    (Read, 1, ReadBit),
    (Write, 4, WriteField),
    (Write, 1, WriteBit),
    (ReadWrite, 4, ReadWriteField),
    (ReadWrite, 1, ReadWriteBit),
])
def test_view_follows_access(access, width, view):
    assert type(BitField(0, width, U32, access).bind(Register(0))) is view


def test_capabilities():
    reg = Register(0)
    read = BitField(0, 4, U32, Read).bind(reg)
    assert not hasattr(read, 'write')
    assert not hasattr(read, 'clear')
    assert not hasattr(read, 'commit')
    write = BitField(0, 4, U32, Write).bind(reg)
    assert not hasattr(write, 'get')
    assert not hasattr(write, 'set')
    assert not hasattr(BitField(0, 4).bind(reg), 'is_set')
    bit = BitField(0, 1, U32, Write).bind(reg)
    assert not hasattr(bit, 'is_set')
    assert hasattr(bit, 'toggle')


@pytest.mark.parametrize("value", [0, 1, 0xa, 0xf, 0x1f, 0xfff])
def test_write_then_get(value):
    field = BitField(4, 4).bind(Register(0))
    field.write(value)
    assert field.get() == value & field.max()
    assert field.reg.cache == (value & 0xf) << 4


def test_write_keeps_other_fields():
    reg = Register(0)
    reg.cache = 0xffffffff
    BitField(8, 8).bind(reg).write(0x12)
    assert reg.cache == 0xffff12ff


def test_clear():
    reg = Register(0)
    reg.cache = 0xffffffff
    BitField(4, 4).bind(reg).clear()
    assert reg.cache == 0xffffff0f


def test_write_mask_merges():
    reg = Register(0)
    field = BitField(4, 4).bind(reg)
    field.write(0b1010)
    field.write_mask(0b0101)
    assert field.get() == 0b1111
    reg.cache = 0x0000_0300
    BitField(8, 4).bind(reg).write_mask(0x8)
    assert reg.cache == 0x0000_0b00


@pytest.mark.parametrize("start, value", [(0, 0x3), (0xa0, 0x5), (0xffffffff, 0x0)])
def test_write_mask_idempotent(start, value):
    reg = Register(0)
    reg.cache = start
    field = BitField(4, 4).bind(reg)
    field.write_mask(value)
    once = reg.cache
    field.write_mask(value)
    assert reg.cache == once


def test_bit_operations():
    reg = Register(0)
    bit = BitField(3, 1).bind(reg)
    assert not bit.is_set()
    bit.set()
    assert reg.cache == 0x8
    assert bit.is_set()
    bit.toggle()
    assert reg.cache == 0
    bit.toggle()
    bit.reset()
    assert reg.cache == 0
    bit.assign(True)
    assert bit.get() == 1
    bit.assign(False)
    assert not bit.is_set()


def test_mutation_never_touches_hardware(bus):
    reg = CtrlReg(0x1000, bus)
    reg.en.set()
    reg.baud.write(0x1a)
    assert words(bus) == [0, 0, 0, 0]
    reg.commit()
    assert words(bus)[0] == 0x1a01


def test_fetch_commit(bus):
    bus.store(0x1004, U32, 0x80000030)
    reg = CtrlReg(0x1004, bus)
    assert reg.reg_.cache == 0
    assert reg.fetch() is reg
    assert reg.busy.is_set()
    assert reg.mode.get() == 3
    reg.mode.write(0xc)
    reg.en.set().commit()
    # the cache goes out as is, read-only bits included
    assert bus.load(0x1004, U32) == 0x800000c1
    bus.store(0x1004, U32, 0)
    assert reg.busy.fetch().get() == 0


def test_register_class_fields():
    assert isinstance(CtrlReg.en, BitField)
    assert CtrlReg.baud.name == 'baud'
    reg = CtrlReg(0)
    with pytest.raises(AttributeError):
        reg.en = 1
    assert repr(reg) == 'CtrlReg(0x0, cache=0x0)'


def test_attach():
    reg = Register(0x1000)
    bus = MemoryBus(bytearray(4), base=0x1000)
    previous = zermio.attach(None)
    try:
        with pytest.raises(RuntimeError):
            reg.fetch()
        zermio.attach(bus)
        assert zermio.attached() is bus
        reg.cache = 0x55
        reg.commit()
        assert bus.load(0x1000, U32) == 0x55
    finally:
        zermio.attach(previous)


def test_memory_bus_checks(bus):
    with pytest.raises(ValueError, match='unaligned'):
        bus.load(0x1002, U32)
    with pytest.raises(ValueError, match='outside'):
        bus.load(0x1010, U32)
    bus.store(0x1002, U16, 0x1ffff)
    assert bus.load(0x1002, U16) == 0xffff
    assert bus.load(0x1003, U8) == 0xff
