import pytest

from mmiogen import svd
from mmiogen.mmio import Permissions, SchemaError, Unsupported

from .samples import ACME_SVD, acme_svd, svd_device, svd_peripheral


def acme():
    platform, warnings = svd.to_platform(acme_svd())
    assert warnings == []
    return platform


def registers_by_name(device):
    return { info.name: (reg, info) for reg in device.registers for info in reg.info }


def test_platform():
    platform = acme()
    assert platform.name == 'ACME1'
    assert platform.bus_width == 32
    assert list(platform.device_types) == ['uart', 'tim']
    assert [(d.name, d.address) for d in platform.device_types['uart']] == [
        ('UART0', '0x40000000'), ('UART1', '0x40001000')]
    # UART1 is derived, it contributes an address but no template
    assert [d.type_ for d in platform.devices] == ['uart', 'tim']


def test_interrupts():
    platform = acme()
    assert [(i.name, i.value, i.description) for i in platform.interrupts] == [
        ('UART0_RX', 5, 'Receive complete'), ('UART1_RX', 6, 'UART1_RX')]


def test_fields():
    uart = acme().find_device('uart')
    ctrl, _ = registers_by_name(uart)['CTRL']
    assert ctrl.desc == 'Control'
    assert [(f.name, f.offset, f.bit_size, f.permissions) for f in ctrl.bitfields] == [
        ('EN', 0, 1, Permissions.ReadWrite),
        ('MODE', 4, 2, Permissions.ReadWrite),
        ('BAUD', 8, 8, Permissions.Write),
    ]
    assert ctrl.bitfields[0].desc == 'Enable'
    assert ctrl.bitfields[1].desc == 'MODE'


def test_access_inherited_from_register():
    status, info = registers_by_name(acme().find_device('uart'))['STATUS']
    assert info.offset == 4
    assert status.bitfields[0].permissions == Permissions.Read
    assert status.is_readable()
    assert not status.is_writable()


def test_register_without_fields_gets_default():
    data, info = registers_by_name(acme().find_device('uart'))['DATA']
    assert info.offset == 8
    assert len(data.bitfields) == 1
    field = data.bitfields[0]
    assert (field.name, field.offset, field.bit_size) == ('value', 0, 32)
    assert field.permissions == Permissions.ReadWrite


def test_derived_register_copies_fields():
    regs = registers_by_name(acme().find_device('uart'))
    ctrl2, info = regs['CTRL2']
    assert info.offset == 0xc
    assert [f.name for f in ctrl2.bitfields] == [f.name for f in regs['CTRL'][0].bitfields]


def test_cluster_array():
    tim = acme().find_device('tim')
    ctrl = tim.registers[0]
    assert [i.name for i in ctrl.info] == ['TIMER0_CTRL', 'TIMER1_CTRL', 'TIMER2_CTRL', 'TIMER3_CTRL']
    assert [i.offset for i in ctrl.info] == [0x0, 0x10, 0x20, 0x30]
    assert {i.type_ for i in ctrl.info} == {'TIMER_CTRL'}


def test_plain_cluster_is_flattened():
    regs = registers_by_name(acme().find_device('tim'))
    _, info = regs['CH_CFG']
    assert info.offset == 0x44


def test_register_array():
    dr = acme().find_device('tim').registers[2]
    assert [(i.name, i.offset) for i in dr.info] == [('DR0', 0x50), ('DR1', 0x54)]
    assert all(i.desc == i.name for i in dr.info)


def test_expansion_offsets_are_arithmetic():
    for device in acme().devices:
        for reg in device.registers:
            names = [i.name for i in reg.info]
            assert len(set(names)) == len(names)
            steps = {b.offset - a.offset for a, b in zip(reg.info, reg.info[1:])}
            assert len(steps) <= 1


@pytest.mark.parametrize("peripheral, derived, expected", [
    ('UART2', '', 'uart'),
    ('SPI1', ' derivedFrom="SPI0"', 'spi'),
    ('I2C', '', 'i2c'),
])
def test_peripheral_type(peripheral, derived, expected):
    root = svd_device(svd_peripheral('SPI0', '', base='0x100')
                      + svd_peripheral(peripheral, '<register><name>R</name><addressOffset>0</addressOffset></register>',
                                       attrs=derived))
    platform, _ = svd.to_platform(root)
    assert peripheral in [d.name for d in platform.device_types[expected]]


def test_header_struct_name_and_type_override():
    reg = '<register><name>R</name><addressOffset>0</addressOffset></register>'
    root = svd_device(svd_peripheral('USART3', reg, extra='<headerStructName>USART</headerStructName>')
                      + svd_peripheral('DMA1', reg, base='0x2000'))
    platform, _ = svd.to_platform(root, types={'DMA1': 'dma_v2'})
    assert sorted(platform.device_types) == ['dma_v2', 'usart']


def test_skip():
    platform, _ = svd.to_platform(acme_svd(), skip=['UART1'])
    assert [d.name for d in platform.device_types['uart']] == ['UART0']
    assert [i.name for i in platform.interrupts] == ['UART0_RX']


def test_bit_position_encodings_and_literals():
    fields = ('<fields>'
              '<field><name>A</name><bitRange>[ 31 : 28 ]</bitRange></field>'
              '<field><name>B</name><lsb>#100</lsb><msb>#111</msb></field>'
              '<field><name>C</name><bitOffset>010</bitOffset><bitWidth>0x2</bitWidth></field>'
              '</fields>')
    root = svd_device(svd_peripheral('X', f"<register><name>R</name><addressOffset>0x10</addressOffset>{fields}</register>"))
    reg = svd.to_platform(root).platform.devices[0].registers[0]
    assert reg.info[0].offset == 0x10
    assert [(f.name, f.offset, f.bit_size) for f in reg.bitfields] == [('B', 4, 4), ('C', 10, 2), ('A', 28, 4)]


def test_peripheral_access_inherited():
    reg = ('<register><name>R</name><addressOffset>0</addressOffset>'
           '<fields><field><name>F</name><bitOffset>0</bitOffset></field></fields></register>')
    root = svd_device(svd_peripheral('X', reg, extra='<access>writeOnce</access>'))
    field = svd.to_platform(root).platform.devices[0].registers[0].bitfields[0]
    assert field.permissions == Permissions.WriteOnce


def test_peripheral_array_is_skipped():
    reg = '<register><name>R</name><addressOffset>0</addressOffset></register>'
    root = svd_device(svd_peripheral('GPIO[%s]', reg, extra='<dim>2</dim><dimIncrement>0x400</dimIncrement>')
                      + svd_peripheral('ADC', reg, base='0x2000'))
    platform, warnings = svd.to_platform(root)
    assert list(platform.device_types) == ['adc']
    assert len(warnings) == 1
    assert 'peripheral arrays are not supported' in warnings[0]

    with pytest.raises(Unsupported):
        svd.to_platform(svd_device(svd_peripheral('GPIO[%s]', reg, extra='<dim>2</dim>')), strict=True)


def test_field_array_skips_register():
    regs = ('<register><name>A</name><addressOffset>0</addressOffset><fields>'
            '<field><name>P%s</name><dim>2</dim><dimIncrement>1</dimIncrement><bitOffset>0</bitOffset></field>'
            '</fields></register>'
            '<register><name>B</name><addressOffset>4</addressOffset></register>')
    platform, warnings = svd.to_platform(svd_device(svd_peripheral('X', regs)))
    assert [r.name for r in platform.devices[0].registers] == ['B']
    assert warnings == ['X.A.P%s: field arrays are not supported']


def test_duplicate_type_keeps_first_definition():
    root = svd_device(svd_peripheral('UART0', '<register><name>A</name><addressOffset>0</addressOffset></register>')
                      + svd_peripheral('UART1', '<register><name>B</name><addressOffset>0</addressOffset></register>',
                                       base='0x2000'))
    platform, warnings = svd.to_platform(root)
    assert [r.name for r in platform.find_device('uart').registers] == ['A']
    assert len(platform.device_types['uart']) == 2
    assert warnings and 'UART1' in warnings[0]


def test_nested_cluster_is_fatal():
    regs = ('<cluster><name>OUTER</name><addressOffset>0</addressOffset>'
            '<cluster><name>INNER</name><addressOffset>0</addressOffset>'
            '<register><name>R</name><addressOffset>0</addressOffset></register>'
            '</cluster></cluster>')
    with pytest.raises(SchemaError, match='INNER') as exc:
        svd.to_platform(svd_device(svd_peripheral('X', regs)))
    assert not isinstance(exc.value, Unsupported)


@pytest.mark.parametrize("field, message", [
    ('<field><name>F</name><bitRange>[7-0]</bitRange></field>', 'malformed bitRange'),
    ('<field><name>F</name><bitOffset>zz</bitOffset></field>', 'malformed number'),
    ('<field><name>F</name><bitOffset>0</bitOffset><access>read-sometimes</access></field>', 'unsupported access'),
    ('<field><name>F</name></field>', 'missing bit position'),
])
def test_malformed_field_is_fatal(field, message):
    reg = f"<register><name>R</name><addressOffset>0</addressOffset><fields>{field}</fields></register>"
    with pytest.raises(SchemaError, match=message) as exc:
        svd.to_platform(svd_device(svd_peripheral('X', reg)))
    assert 'X.R.F' in str(exc.value)


def test_missing_base_address_is_fatal():
    root = svd_device('<peripheral><name>X</name><registers>'
                      '<register><name>R</name><addressOffset>0</addressOffset></register>'
                      '</registers></peripheral>')
    with pytest.raises(SchemaError, match='baseAddress'):
        svd.to_platform(root)


def test_not_a_svd_document():
    with pytest.raises(SchemaError):
        svd.to_platform({ 'soc': {} })


def test_load(tmp_path):
    path = tmp_path / 'acme.svd'
    path.write_text(ACME_SVD)
    platform, warnings = svd.load(path)
    assert platform.name == 'ACME1'
    assert warnings == []


def test_header_struct_name_drops_instance_digits():
    reg = '<register><name>R</name><addressOffset>0</addressOffset></register>'
    root = svd_device(svd_peripheral('TIM2', reg, extra='<headerStructName>TIM2</headerStructName>'))
    platform, _ = svd.to_platform(root)
    assert list(platform.device_types) == ['tim']


def test_cluster_array_register_outside_prefix():
    regs = ('<cluster><dim>2</dim><dimIncrement>0x8</dimIncrement><name>CH[%s]</name>'
            '<addressOffset>0x10</addressOffset>'
            '<register><name>SCHED</name><addressOffset>0x4</addressOffset></register>'
            '</cluster>')
    platform, _ = svd.to_platform(svd_device(svd_peripheral('DMA', regs)))
    sched = platform.find_device('dma').registers[0]
    assert [(i.name, i.offset) for i in sched.info] == [('CH0_SCHED', 0x14), ('CH1_SCHED', 0x1c)]


@pytest.mark.parametrize("text", [
    '<device><name>X</name>',
    '<device><name>X</name></device><device/>',
    '',
])
def test_malformed_xml_is_fatal(text):
    with pytest.raises(SchemaError, match='malformed XML'):
        svd.parseString(text)


def test_load_honours_declared_encoding(tmp_path):
    path = tmp_path / 'latin.svd'
    path.write_bytes(ACME_SVD.replace('utf-8', 'iso-8859-1')
                     .replace('Serial port', 'Serial port \xb5C').encode('iso-8859-1'))
    platform, _ = svd.load(path)
    assert platform.name == 'ACME1'
