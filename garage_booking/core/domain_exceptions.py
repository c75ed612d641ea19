class DomainException(Exception):
    """Business rule violation surfaced to API callers."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
