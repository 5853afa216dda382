"""Attachment resolution for the user side of a turn.

Uploaded images are embedded into the document as base64 ``data:`` URLs.
Uploaded files are saved next to the export and linked by relative path.
"""

import base64
import binascii
import logging
import mimetypes
from pathlib import Path
from typing import Awaitable, Callable, Optional
from urllib.parse import unquote_to_bytes, urljoin

import httpx

from .exceptions import AttachmentDownloadError, AttachmentFetchError
from .models import Attachment, AttachmentKind, Node
from .utils import sanitize_attachment_name

logger = logging.getLogger(__name__)

ATTACHMENTS_DIR = "attachments"
DEFAULT_IMAGE_NAME = "image"
FILE_CHIP_CLASSES = ("file-chip", "uploaded-file")
CONTAINER_CLASSES = ("attachment", "uploaded-media")

# Reads a URL inside the live page and returns it as a data: URL
PageReader = Callable[[str], Awaitable[str]]


# -----------------------------------------------------------------------------
# Discovery
# -----------------------------------------------------------------------------


def _is_uploaded_image(node: Node) -> bool:
    if node.tag != "img":
        return False
    src = node.get("src") or ""
    return "upload" in src or "file" in src or node.has_class("uploaded-image")


def _is_file_chip(node: Node) -> bool:
    return node.has_attr("data-file-name") or any(
        node.has_class(name) for name in FILE_CHIP_CLASSES
    )


def _is_attachment_container(node: Node) -> bool:
    return node.get("data-test-id") == "attachment" or any(
        node.has_class(name) for name in CONTAINER_CLASSES
    )


def resolve_source(src: str, base_url: str) -> str:
    """Absolute address of an attachment; ``data:`` and ``blob:`` URLs pass through."""
    if src.startswith(("data:", "blob:")) or not base_url:
        return src
    return urljoin(base_url, src)


def _file_source(node: Node) -> str:
    for name in ("href", "data-file-url", "src"):
        if value := node.get(name):
            return value
    anchor = node.find(lambda n: n.tag == "a" and bool(n.get("href")))
    return (anchor.get("href") or "") if anchor else ""


def _image(img: Node, base_url: str) -> Attachment:
    source = resolve_source(img.get("src") or "", base_url)
    return Attachment(
        kind=AttachmentKind.IMAGE,
        identity_key=f"image:{source}",
        display_name=img.get("alt") or DEFAULT_IMAGE_NAME,
        source=source,
    )


def _file(name: str, node: Node, base_url: str) -> Attachment:
    source = _file_source(node)
    return Attachment(
        kind=AttachmentKind.FILE,
        identity_key=f"file:{name}",
        display_name=name,
        source=resolve_source(source, base_url) if source else "",
    )


def discover_attachments(user_root: Node, base_url: str = "") -> list[Attachment]:
    """Find uploaded images and files below a user query, duplicates included.

    Order: standalone images, then file chips, then attachment containers,
    each in document order.
    """
    attachments = [_image(img, base_url) for img in user_root.find_all(_is_uploaded_image)]

    for position, chip in enumerate(user_root.find_all(_is_file_chip), start=1):
        name = (
            chip.get("data-file-name")
            or chip.text_content().strip()
            or chip.get("aria-label")
            or f"uploaded_file_{position}"
        )
        attachments.append(_file(name, chip, base_url))

    containers = user_root.find_all(_is_attachment_container)
    for position, container in enumerate(containers, start=1):
        if img := container.find(lambda n: n.tag == "img"):
            attachments.append(_image(img, base_url))
            continue
        name = (
            container.get("data-filename")
            or container.get("data-file-name")
            or f"attachment_{position}"
        )
        attachments.append(_file(name, container, base_url))

    return attachments


# -----------------------------------------------------------------------------
# Resolution
# -----------------------------------------------------------------------------


def _decode_data_url(data_url: str) -> tuple[str, bytes]:
    """Split a ``data:`` URL into its media type and decoded bytes."""
    header, sep, payload = data_url[len("data:") :].partition(",")
    if not sep:
        raise ValueError("data URL has no payload")
    media_type, _, encoding = header.partition(";")
    if encoding.endswith("base64"):
        return media_type, base64.b64decode(payload, validate=True)
    return media_type, unquote_to_bytes(payload)


async def _fetch(client: httpx.AsyncClient, url: str) -> httpx.Response:
    response = await client.get(url, follow_redirects=True)
    response.raise_for_status()
    return response


async def _read_blob(read_in_page: Optional[PageReader], url: str) -> str:
    """``blob:`` URLs belong to the page and can only be read through it."""
    if read_in_page is None:
        raise AttachmentFetchError(f"{url} can only be read from the live page")
    return await read_in_page(url)


class AttachmentDownloader:
    """Saves file attachments under ``<output_dir>/<export_base>/attachments``."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        output_dir: Path,
        read_in_page: Optional[PageReader] = None,
    ):
        self.client = client
        self.output_dir = output_dir
        self.read_in_page = read_in_page

    async def download(self, source: str, file_name: str, export_base: str) -> str:
        """Save one file and return its path relative to ``output_dir``.

        Raises:
            AttachmentDownloadError: If the file cannot be obtained or written.
        """
        safe_name = sanitize_attachment_name(file_name)
        if not source:
            raise AttachmentDownloadError(f"No download address for {file_name}")

        try:
            if source.startswith("blob:"):
                source = await _read_blob(self.read_in_page, source)
            if source.startswith("data:"):
                _, data = _decode_data_url(source)
            else:
                data = (await _fetch(self.client, source)).content
        except (
            AttachmentFetchError,
            httpx.HTTPError,
            httpx.InvalidURL,
            ValueError,
            binascii.Error,
        ) as e:
            raise AttachmentDownloadError(
                f"Could not download {file_name}: {e}"
            ) from e

        target = self.output_dir / export_base / ATTACHMENTS_DIR / safe_name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise AttachmentDownloadError(f"Could not save {file_name}: {e}") from e

        logger.debug("Saved attachment %s (%d bytes)", target, len(data))
        return f"{export_base}/{ATTACHMENTS_DIR}/{safe_name}"


class AttachmentResolver:
    """Turns the attachments of one user query into Markdown fragments."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        downloader: Optional[AttachmentDownloader] = None,
        base_url: str = "",
        read_in_page: Optional[PageReader] = None,
    ):
        self.client = client
        self.downloader = downloader
        self.base_url = base_url
        self.read_in_page = read_in_page

    async def embed_image(self, source: str) -> str:
        """Return the image as a ``data:`` URL, fetching it when needed.

        Raises:
            AttachmentFetchError: If the image cannot be fetched.
        """
        if source.startswith("data:"):
            return source
        if source.startswith("blob:"):
            return await _read_blob(self.read_in_page, source)
        try:
            response = await _fetch(self.client, source)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AttachmentFetchError(f"Could not fetch image {source}: {e}") from e

        media_type = (
            response.headers.get("content-type", "").split(";")[0].strip()
            or mimetypes.guess_type(source)[0]
            or "application/octet-stream"
        )
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{media_type};base64,{encoded}"

    async def _fragment(self, attachment: Attachment, export_base: str) -> str:
        if attachment.kind == AttachmentKind.IMAGE:
            payload = await self.embed_image(attachment.source)
            return f"\n![{attachment.display_name}]({payload})\n"

        if self.downloader is None:
            raise AttachmentDownloadError(
                f"No download location for {attachment.display_name}"
            )
        path = await self.downloader.download(
            attachment.source, attachment.display_name, export_base
        )
        safe_name = sanitize_attachment_name(attachment.display_name)
        return f"\n[Attachment: {safe_name}]({path})\n"

    async def resolve(self, user_root: Node, export_base: str) -> list[str]:
        """Markdown fragments for the attachments below ``user_root``.

        Attachments sharing an identity key produce one fragment. The set of
        seen keys lives for this call only, so the same image in two turns is
        embedded twice. A failing attachment is logged and skipped.
        """
        fragments: list[str] = []
        seen: set[str] = set()
        for attachment in discover_attachments(user_root, self.base_url):
            if attachment.identity_key in seen:
                logger.debug("Skipping duplicate attachment %s", attachment.identity_key)
                continue
            seen.add(attachment.identity_key)

            try:
                fragments.append(await self._fragment(attachment, export_base))
            except AttachmentFetchError as e:
                logger.warning("Image attachment omitted: %s", e)
            except AttachmentDownloadError as e:
                logger.warning("File attachment omitted: %s", e)
        return fragments
