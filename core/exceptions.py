class ConflictError(Exception):
    """
    The requested change clashes with the current state of a record.

    Raised for duplicate records and for writes that would overwrite
    something the caller is not allowed to overwrite.
    """

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code or 'conflict'
