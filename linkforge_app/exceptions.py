"""
Domain exceptions.

Directories translate storage-library errors into these so that services,
the resolver and the tracker never depend on SQLAlchemy or Redis error types.
"""


class LinkForgeError(Exception):
    """Base class for all application errors"""


class DirectoryError(LinkForgeError):
    """The link directory could not be reached or failed transiently (retryable)"""


class DuplicateShortCodeError(LinkForgeError):
    """A link with this short code already exists"""

    def __init__(self, code: str):
        super().__init__(f"Short code already taken: {code}")
        self.code = code


class LinkNotFoundError(LinkForgeError):
    """No link with the given id exists"""

    def __init__(self, link_id: str):
        super().__init__(f"Link not found: {link_id}")
        self.link_id = link_id


class ShortCodeExhaustedError(LinkForgeError):
    """Every generated candidate collided; the code space is too small for current volume"""


class InvalidExpiryError(LinkForgeError):
    """A custom expiry is not in the future"""


class InvalidTargetError(LinkForgeError, ValueError):
    """The target is not a well-formed absolute http(s) URL"""


class QueuePublishError(LinkForgeError):
    """A click message could not be published to the queue (retryable)"""
