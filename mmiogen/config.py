# Generator configuration, read from a YAML file and checked against
# resources/config.schema.yaml.
#
# Example:
#   file_header: |
#     Copyright (c) 2025 ACME.
#     SPDX-License-Identifier: Apache-2.0
#   targets: [cpp, python]
#   types:            # device type overrides, by instance name
#     TIM1: adv_timer
#   skip: [DBGMCU]    # instances to ignore
#   split_interfaces: true
#   strict: false

from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .schema import describe, problems

TARGETS = ('cpp', 'python', 'yaml')

DEFAULTS = {
    'file_header': '',
    'targets': ['cpp'],
    'types': {},
    'skip': [],
    'split_interfaces': True,
    'strict': False,
}


class ConfigError(ValueError):
    pass


def load_config(config_file:Path=None) -> dict:
    """ Load the configuration, falling back to the defaults for everything not given. """
    config = { k: (list(v) if isinstance(v, list) else dict(v) if isinstance(v, dict) else v)
               for k, v in DEFAULTS.items() }
    if config_file is None:
        return config

    config_file = Path(config_file)
    if not config_file.exists():
        raise ConfigError(f"config {config_file} not found")
    yaml = YAML(typ='safe')
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            loaded = yaml.load(f)
    except (YAMLError, UnicodeDecodeError) as e:
        raise ConfigError(f"{config_file}: {e}") from None
    if loaded is None:
        loaded = {}

    found = problems('config.schema.yaml', loaded)
    if found:
        raise ConfigError(f"{config_file}: {describe(found)}")

    config.update({ k: v for k, v in loaded.items() if v is not None })
    config['types'] = { str(k): str(v) for k, v in config['types'].items() }
    config['skip'] = [str(s) for s in config['skip']]
    return config
