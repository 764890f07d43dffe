"""Error taxonomy for vml.

ValidationError and its subclasses describe bad or ambiguous user input.
They are raised before any artifact is written, and the dispatcher maps
them to exit code 2 with the message only.

Everything else (CollaboratorError, FilesystemWatchError, exceptions
raised inside toolchain callables) propagates with a traceback and exit
code 1.
"""


class VmlError(Exception):
    """Base exception for vml."""
    pass


class ValidationError(VmlError):
    """Bad or ambiguous input. Surfaced without a stack trace."""
    pass


class NotFoundError(ValidationError):
    """A source, script, timeline or audio path does not exist."""
    pass


class AmbiguousDiscoveryError(ValidationError):
    """Source discovery found zero or several candidates."""
    pass


class MissingArtifactError(NotFoundError):
    """A generated artifact needed for rendering is missing on disk."""
    pass


class CollaboratorError(VmlError):
    """An external tool (the encoder) failed."""
    pass


class FilesystemWatchError(VmlError):
    """The filesystem observer could not be set up."""
    pass
