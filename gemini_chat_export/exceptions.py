"""Error taxonomy for the export pipeline.

Fatal errors (ContainerNotFoundError, EmptySelectionError, UnexpectedSinkError)
propagate to the caller and are reported to the user. Attachment errors are
raised and absorbed inside the attachment resolver: they only ever cost the
fragment for that single attachment.
"""


class ExportError(Exception):
    """Base class for all export failures."""


class ContainerNotFoundError(ExportError):
    """The scrollable chat history container is not present on the page."""

    def __init__(self, selector: str):
        super().__init__(
            f"Could not find chat history container ({selector}). "
            "Are you on a Gemini chat page?"
        )
        self.selector = selector


class EmptySelectionError(ExportError):
    """No message side was selected for export."""

    def __init__(self) -> None:
        super().__init__(
            "Please select at least one message to export "
            "(use --select all, --select ai, or --pick)."
        )


class AttachmentFetchError(ExportError):
    """An image attachment could not be fetched or encoded."""


class AttachmentDownloadError(ExportError):
    """A file attachment could not be saved to the attachments folder."""


class UnexpectedSinkError(ExportError):
    """Writing the finished document to its destination failed."""
