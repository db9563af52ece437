# Dump the platform IR as YAML, mostly to inspect what the adapters made of a source file.
from pathlib import Path

from ruamel.yaml import YAML

from . import check_platform, comment_block, identifier


def _bitfield(f):
    return { 'name': f.name, 'description': f.desc, 'bitOffset': f.offset, 'bitWidth': f.bit_size,
             'access': str(f.permissions) }


def _register(r):
    return {
        'instances': [{ 'name': i.name, 'type': i.type_, 'description': i.desc, 'addressOffset': i.offset }
                      for i in r.info],
        'fields': [_bitfield(f) for f in r.bitfields],
    }


def platformToModel(platform) -> dict:
    """ Plain dict/list rendition of a platform, keyed like the SVD element names where there is one. """
    return {
        'name': platform.name,
        'width': platform.bus_width,
        'instances': { t: [{ 'name': d.name, 'baseAddress': int(d.address, 16) } for d in devs]
                       for t, devs in platform.device_types.items() },
        'interrupts': [{ 'name': i.name, 'description': i.description, 'value': i.value } for i in platform.interrupts],
        'models': [{ 'name': d.name, 'type': d.type_, 'registers': [_register(r) for r in d.registers] }
                   for d in platform.devices],
    }


def dumpModel(model:dict, filename:Path, comment:str=''):
    """ write a YAML file for a model """
    with open(filename, 'w') as file:
        if comment:
            file.write(comment)
        yaml = YAML()
        yaml.indent(mapping=2, sequence=4, offset=2)
        yaml.dump(model, file)
    return filename


def generate(platform, out_dir:Path, file_header:str=''):
    check_platform(platform)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / (identifier(platform.name) + '.yaml')
    return [dumpModel(platformToModel(platform), path, comment_block(file_header, '#'))]
