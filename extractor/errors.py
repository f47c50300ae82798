class ExtractionError(Exception):
    """An extraction that failed in a way the caller should see.

    ``status_code`` is the HTTP status the API answers with.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
