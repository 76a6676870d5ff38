"""Exception hierarchy for freshimage.

Record read and write failures are recoverable: callers log them and carry
on. Everything else aborts the staleness check or build in progress.
"""


class FreshImageError(Exception):
    """Base class for all freshimage errors."""


class EngineLookupError(FreshImageError):
    """The build engine could not report on an image."""


class ImageNotFound(EngineLookupError):
    """The engine has no image by that name.

    Not a failure for staleness purposes: it means the image must be built.
    """


class FilesystemWalkError(FreshImageError):
    """A directory walk over the build context failed."""


class IgnorePatternError(FreshImageError):
    """An ignore-pattern source could not be read or resolved."""


class RecordReadError(FreshImageError):
    """A build record could not be read or parsed."""


class RecordNotFound(RecordReadError):
    """No build record exists at the given path."""


class RecordWriteError(FreshImageError):
    """A build record could not be written."""


class ArchivePackError(FreshImageError):
    """The build context archive could not be assembled."""


class BuildEngineError(FreshImageError):
    """The engine failed to build or tag an image."""


class BuildCancelled(FreshImageError):
    """Work was stopped through a cancellation token."""
