class SwmsError(Exception):
    """Base class for failures that end a submission with a 500 response."""


class ConfigError(SwmsError):
    pass


class ValidationError(SwmsError):
    pass


class RenderError(SwmsError):
    pass


class AttachmentError(SwmsError):
    """Signature image could not be decoded or embedded.

    Never escapes the normalizer or the renderers; callers degrade to a
    document without a signature.
    """


class DeliveryError(SwmsError):
    pass
