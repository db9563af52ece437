# Canonical access kinds of a bitfield.
from enum import Enum

from .errors import SchemaError


class Permissions(Enum):
    ReadWrite = 'ReadWrite'
    ReadWriteOnce = 'ReadWriteOnce'
    Read = 'Read'
    Write = 'Write'
    WriteOnce = 'WriteOnce'

    def __str__(self):
        return self.value

    def is_readable(self) -> bool:
        return self in (Permissions.ReadWrite, Permissions.Read, Permissions.ReadWriteOnce)

    def is_writable(self) -> bool:
        return self in (Permissions.ReadWrite, Permissions.WriteOnce,
                        Permissions.Write, Permissions.ReadWriteOnce)

    @classmethod
    def default(cls):
        return cls.ReadWrite

    @classmethod
    def from_source_token(cls, token:str, path:str=None):
        """ Map a SVD access string onto a permission.
            Anything outside the SVD access vocabulary is fatal. """
        try:
            return _SVD_ACCESS[token.strip()]
        except (KeyError, AttributeError):
            raise SchemaError(f"unsupported access '{token}'", path) from None

    @classmethod
    def from_sw_flags(cls, writable:bool, readable:bool, path:str=None):
        """ Map the (sw_writable, sw_readable) pair of the JSON schema onto a permission. """
        perm = _SW_FLAGS.get((bool(writable), bool(readable)))
        if perm is None:
            raise SchemaError("field is neither readable nor writable", path)
        return perm


_SVD_ACCESS = {
    'read-only': Permissions.Read,
    'write-only': Permissions.Write,
    'read-write': Permissions.ReadWrite,
    'writeOnce': Permissions.WriteOnce,
    'read-writeOnce': Permissions.ReadWriteOnce,
}

_SW_FLAGS = {
    (False, True): Permissions.Read,
    (True, True): Permissions.ReadWrite,
    (True, False): Permissions.Write,
}
