# Generate C++ headers for a platform.
#
# One header per device type holds a union per register layout (all bitfields alias a
# single zermio::Register) and a struct with one member per register instance. The
# platform header holds the addresses of all device instances and the interrupt numbers.

from pathlib import Path
from string import Template

from . import (access_tag, check_platform, comment_block, identifier, pascal_case,
               resource, unique_types, write)

KEYWORDS = frozenset('''
    alignas alignof and and_eq asm auto bitand bitor bool break case catch char class
    compl concept const consteval constexpr constinit const_cast continue default delete
    do double dynamic_cast else enum explicit export extern false float for friend goto
    if inline int long mutable namespace new noexcept not not_eq nullptr operator or
    or_eq private protected public register requires return short signed sizeof static
    static_assert static_cast struct switch template this throw true try typedef typeid
    typename union unsigned using virtual void volatile while xor xor_eq
'''.split())

# members of a register union besides its bitfields
RESERVED = KEYWORDS | {'reg_', 'commit', 'fetch'}


def _comment(text:str) -> str:
    return ' '.join(text.split()).replace('*/', '* /')


class CxxFormatter:
    def __init__(self, **keywords):
        self.bitfieldTemplate = Template(keywords.get('bitfield', '\n\t/* $desc */\n\tzermio::BitField<$offset, $width, $type, zermio::access::$access> $name;'))
        self.registerTemplate = Template(keywords.get('register', """
/* $desc */
union ${name}Reg {
 private:
\tzermio::Register<$type> reg_;

 public:$fields

\tconstexpr ${name}Reg(uintptr_t addr) : reg_{.addr = addr} {}

\tinline void commit() { reg_.commit(); }

\tinline ${name}Reg& fetch() {
\t\treg_.fetch();
\t\treturn *this;
\t}
};
"""))
        self.memberTemplate = Template(keywords.get('member', '\n\t${type}Reg $name;'))
        self.initTemplate = Template(keywords.get('init', '$name(base + $offset)'))
        self.deviceTemplate = Template(keywords.get('device', """
/* To facilitate compiler optimization of this abstraction, prefer using this struct within a small scope. */
struct $name {$members

\tconstexpr $name(platform::$name addr)
\t\t: $name(static_cast<uintptr_t>(addr)) {}

\tconstexpr explicit $name(uintptr_t base)
\t\t: $inits {}
};
"""))
        self.headerTemplate = Template(keywords.get('header', """${prefix}// File was generated, do not edit!
#pragma once
/* `platform.hh` is expected to include the header with the device addresses of the platform. */
#include "platform.hh"
#include "zermio.hh"

namespace mmio {
namespace $ns {
$registers$device
}  // namespace $ns
}  // namespace mmio
"""))
        self.addressTemplate = Template(keywords.get('address', '\n\t$name = $address,'))
        self.addressesTemplate = Template(keywords.get('addresses', """
/* Addresses for the devices of the type $type. */
enum class $name : uintptr_t {$entries
};
"""))
        self.interruptTemplate = Template(keywords.get('interrupt', '\n\t/* $desc */\n\t$name = $value,'))
        self.platformTemplate = Template(keywords.get('platform', """${prefix}// File was generated, do not edit!
#pragma once
#include <cstdint>

namespace platform {
$addresses
enum class Interrupt : uint32_t {$interrupts
};

}  // namespace platform
"""))

    def uintType(self, width:int) -> str:
        return f"uint{width}_t"

    def formatRegister(self, name:str, register, width:int) -> str:
        fields = ''
        for f in register.bitfields:
            fields += self.bitfieldTemplate.substitute(desc=_comment(f.desc), offset=f.offset, width=f.bit_size,
                                                       type=self.uintType(width), access=access_tag(f.permissions),
                                                       name=identifier(f.name, RESERVED))
        return self.registerTemplate.substitute(desc=_comment(register.desc), name=name, type=self.uintType(width), fields=fields)

    def formatDevice(self, device, width:int, prefix:str='') -> str:
        """ The header of a device type: register unions followed by the device struct. """
        registers = ''
        members = ''
        inits = []
        for type_name, reg in unique_types(device.registers, pascal_case):
            registers += self.formatRegister(type_name, reg, width)
            for info in reg.info:
                member = identifier(info.name, KEYWORDS)
                members += self.memberTemplate.substitute(type=type_name, name=member)
                inits.append(self.initTemplate.substitute(name=member, offset=hex(info.offset)))
        device_txt = self.deviceTemplate.substitute(name=pascal_case(device.type_), members=members,
                                                    inits=',\n\t\t  '.join(inits))
        return self.headerTemplate.substitute(prefix=prefix, ns=identifier(device.type_, KEYWORDS),
                                              registers=registers, device=device_txt)

    def formatPlatform(self, platform, prefix:str='') -> str:
        addresses = ''
        for type_name, instances in platform.device_types.items():
            entries = ''.join(self.addressTemplate.substitute(name=pascal_case(d.name), address=d.address)
                              for d in instances)
            addresses += self.addressesTemplate.substitute(type=type_name, name=pascal_case(type_name), entries=entries)
        interrupts = ''.join(self.interruptTemplate.substitute(desc=_comment(i.description), name=pascal_case(i.name), value=i.value)
                             for i in platform.interrupts)
        return self.platformTemplate.substitute(prefix=prefix, addresses=addresses, interrupts=interrupts)


def platform_filename(platform) -> str:
    return platform.name.replace(' ', '_').lower() + '_platform.hh'


def generate(platform, out_dir:Path, addr_dir:Path=None, file_header:str='', fmt:CxxFormatter=None):
    """ Write the headers of all device types, the platform header and zermio.hh.
        Returns the paths written. """
    check_platform(platform)
    fmt = fmt or CxxFormatter()
    out_dir = Path(out_dir)
    addr_dir = Path(addr_dir) if addr_dir else out_dir
    prefix = comment_block(file_header, '//')

    written = []
    for device in platform.devices:
        path = out_dir / (identifier(device.type_) + '.hh')
        written.append(write(path, fmt.formatDevice(device, platform.bus_width, prefix)))
    written.append(write(addr_dir / platform_filename(platform), fmt.formatPlatform(platform, prefix)))
    written.append(write(out_dir / 'zermio.hh', resource('zermio.hh')))
    return written
