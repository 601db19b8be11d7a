"""Domain errors raised by the chat services. Routers map them to HTTP responses."""


class ChatError(Exception):
    pass


class UnauthorizedError(ChatError):
    pass


class NotFoundError(ChatError):
    pass


class ModelNotFoundError(NotFoundError):
    pass


class ChatNotFoundError(NotFoundError):
    pass


class InvalidRequestError(ChatError):
    pass


class ChatAlreadyExistsError(ChatError):
    pass


class LLMProviderError(ChatError):
    """The model provider failed, timed out or returned unusable output."""


class PersistenceError(ChatError):
    pass


class StreamClosedError(ChatError):
    pass
