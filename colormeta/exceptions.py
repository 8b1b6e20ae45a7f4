# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Exception classes for colormeta

This module defines custom exceptions for the colormeta library.
File system errors are not wrapped: they propagate as OSError.

Copyright 2025 DNAi inc.
"""


class ColorMetaError(Exception):
    """
    Base exception for all colormeta errors.

    All colormeta exceptions inherit from this class, allowing
    catch-all error handling for any colormeta-related errors.
    """
    def __init__(self, message: str = ""):
        """
        Initialize the exception with an optional error message.

        Args:
            message: Descriptive error message explaining what went wrong
        """
        self.message = message
        super().__init__(message)


class FormatError(ColorMetaError):
    """
    Raised when a container cannot be parsed.

    This exception is raised when:
    - File signature or SOI marker is missing
    - A marker byte, chunk length or segment length is invalid
    - A read is truncated before the declared structure ends
    - A fixed-size chunk (IHDR, pHYs) has the wrong size
    """
    pass


class UnsupportedProfileError(ColorMetaError):
    """
    Raised when ICC profile data cannot be used.

    This exception is raised when:
    - Reconstructed bytes do not form a valid ICC profile
    - A profile colour space is not supported where it is used
    - A required default profile has not been configured
    """
    pass


class CompressionError(ColorMetaError):
    """
    Raised when deflate compression or inflation of profile data fails.
    """
    pass


class UnsupportedFormatError(ColorMetaError):
    """
    Raised when the file format is not supported for an operation.

    Only JPEG and PNG containers support metadata embedding.
    """
    pass


class MetadataWriteError(ColorMetaError):
    """
    Raised when metadata cannot be written to a container.

    This exception is raised when:
    - A profile needs more fragments than a JPEG can carry
    - A resolution value cannot be represented in the container
    - A profile name cannot be encoded
    """
    pass


class TransformError(ColorMetaError):
    """
    Raised when a colour transformation cannot be performed.

    This exception is raised when:
    - The transform engine cannot build a transform
    - The raster layout is not supported
    - Raster dimensions do not match the pixel data
    """
    pass
