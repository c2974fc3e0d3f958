class CoreError(Exception):
    code = "error"

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ValidationError(CoreError):
    code = "validation_error"

    def __init__(self, message: str):
        super().__init__(message, 400)


class NotFoundError(CoreError):
    code = "not_found"

    def __init__(self, message: str):
        super().__init__(message, 404)


class ConflictError(CoreError):
    code = "conflict"

    def __init__(self, message: str):
        super().__init__(message, 409)


class StoreError(CoreError):
    """A create/read/update/delete call against the data store failed."""

    code = "store_error"

    def __init__(self, message: str):
        super().__init__(message, 502)
