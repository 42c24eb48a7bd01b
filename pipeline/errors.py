"""Error kinds raised by the diff pipeline.

None of them are recovered inside the pipeline; the entry point catches
`ImDirDiffError` once, prints the message and exits non-zero.
"""


class ImDirDiffError(Exception):
    pass


class InvalidDirectoryError(ImDirDiffError):
    """An input root is missing or is not a directory."""


class ImageDecodeError(ImDirDiffError):
    pass


class ImageEncodeError(ImDirDiffError):
    pass


class CompareError(ImDirDiffError):
    """The in-process metric could not be computed."""


class ExternalToolError(ImDirDiffError):
    pass


class ExternalToolSpawnError(ExternalToolError):
    pass


class FlipOutputParseError(ExternalToolError):
    pass


class DiffImageMissingError(ExternalToolError):
    pass


class ReportIOError(ImDirDiffError):
    """Creating directories, copying files or writing the report failed."""
