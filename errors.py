"""Exception hierarchy shared by the storage layer, controllers and AI collaborators."""


class PracticeError(Exception):
    """Base class for all IELTS practice errors."""


class ValidationError(PracticeError):
    """Raised for malformed or constraint-violating input. Never retried."""


class InvalidStateError(ValidationError):
    """Raised when a session operation is called in a state that does not allow it."""


class BackendUnavailable(PracticeError):
    """Raised when the remote store cannot be reached or a remote call fails."""


class FatalStorageError(PracticeError):
    """Raised when the local store itself cannot be read or written."""


class ExtractionFailed(PracticeError):
    """Raised when no usable practice tests could be extracted from a document."""


class GradingFailed(PracticeError):
    """Raised when the writing grader returns no usable feedback."""


class ConversationFailed(PracticeError):
    """Raised when the speaking examiner returns no usable reply."""
