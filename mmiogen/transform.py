# Naming policies shared by the schema adapters.
import re

from .mmio.errors import SchemaError

_TRAILING_DIGITS = re.compile(r'\d+$')
_PLACEHOLDER = re.compile(r'\[%s\]|%s')
_NUMERIC_RANGE = re.compile(r'^(\d+)-(\d+)$')
_LETTER_RANGE = re.compile(r'^([A-Z])-([A-Z])$')


def device_name(name:str) -> str:
    """ Instance name as used in generated code: spaces become underscores, upper case. """
    return name.strip().replace(' ', '_').upper()


def peripheral_type(name:str) -> str:
    """ The type shared by all instances of a peripheral.

    Trailing digits are dropped, so UART0 and UART1 end up as 'uart'.
    """
    return _TRAILING_DIGITS.sub('', name.strip().replace(' ', '_')).lower()


def cluster_name(base:str, index:str, name:str) -> str:
    """Name of one element of a register array or cluster array.

    The base is the array/cluster name, possibly carrying a '%s' or '[%s]' placeholder;
    only the part in front of the placeholder is used. When the register name already
    starts with that prefix, the index goes right after it instead of prepending the
    prefix again; otherwise prefix, index and name are joined:

        cluster_name('timer', '0', 'TIMER_CTRL')   -> 'TIMER0_CTRL'
        cluster_name('CH%s_CFG', '2', 'CH_CFG')    -> 'CH2_CFG'
        cluster_name('DMA[%s]', '1', 'CCR')        -> 'DMA1_CCR'
        cluster_name('CH[%s]', '0', 'SCHED')      -> 'CH0_SCHED'
    """
    prefix = _PLACEHOLDER.split(base, maxsplit=1)[0]
    if not prefix:
        return index + name
    if name.lower().startswith(prefix.lower()):
        return name[:len(prefix)] + index + name[len(prefix):]
    sep = '' if name.startswith('_') or prefix.endswith('_') else '_'
    return prefix + index + sep + name


def dim_indices(dim:int, dim_index:str=None, path:str=None) -> list:
    """ The index labels of an array with dim elements.

    dim_index follows SVD: a comma separated list, a numeric range '3-6' or a letter
    range 'A-D'. Without it, the labels are '0'..'dim-1'.
    """
    if not dim_index:
        return [str(n) for n in range(dim)]
    text = dim_index.strip()
    m = _NUMERIC_RANGE.match(text)
    if m:
        labels = [str(n) for n in range(int(m.group(1)), int(m.group(2)) + 1)]
    else:
        m = _LETTER_RANGE.match(text)
        if m:
            labels = [chr(c) for c in range(ord(m.group(1)), ord(m.group(2)) + 1)]
        else:
            labels = [s.strip() for s in text.split(',')]
    if len(labels) != dim:
        raise SchemaError(f"dimIndex '{dim_index}' has {len(labels)} entries, dim is {dim}", path)
    return labels
