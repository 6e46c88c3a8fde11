class AIHandlerError(Exception):
    """Handler failure whose message is safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
