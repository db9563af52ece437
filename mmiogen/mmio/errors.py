# Error taxonomy shared by the schema adapters.


class SchemaError(ValueError):
    """A construct in the source document that can't be turned into the IR.

    The whole conversion is aborted; the message names the offending element.
    """

    def __init__(self, message:str, path:str=None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class Unsupported(SchemaError):
    """A construct the IR can't represent, limited to one register or device.

    Adapters catch this, record a warning and drop the element unless they run strict.
    """
