class LedgerError(Exception):
    pass

class WriteError(LedgerError):
    """The store rejected a create or delete. Nothing was written."""

class ExportError(LedgerError):
    pass
