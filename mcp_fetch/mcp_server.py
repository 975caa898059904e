"""MCP server exposing the imageFetch tool and saved images as resources."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Annotated, List, Optional, Union

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.server.fastmcp.resources import FileResource
from mcp.types import ImageContent, TextContent
from pydantic import Field

from .config import FetchConfig, load_config
from .errors import FetchError
from .fetcher import FetchOptions, fetch_url, paginate_content
from .models import FetchResult, ImageResource
from .resources import ResourceStore

logger = logging.getLogger("mcp_fetch.mcp")

TOOL_DESCRIPTION = """
Retrieves URLs from the Internet and extracts their content as markdown.
Images from the page can be fetched, merged vertically into a single JPEG and returned.

Parameters:
  - url (required): The URL to fetch
  - maxLength (default: 20000): Maximum length of content to return
  - startIndex (default: 0): Starting position in content
  - imageStartIndex (default: 0): Starting position for image collection
  - raw (default: false): Return raw content instead of processed markdown
  - imageMaxCount (default: 3): Maximum number of images to process per request (0-10)
  - imageMaxHeight (default: 4000): Maximum height of merged image
  - imageMaxWidth (default: 1000): Maximum width of merged image
  - imageQuality (default: 80): JPEG quality (1-100)
  - enableFetchImages (default: false): Enable fetching and processing of images
  - allowCrossOriginImages (default: true): Allow images from other origins than the page
  - saveImages (default: true): Save processed images under the download directory
  - returnBase64 (default: false): Return base64 encoded images for display
  - ignoreRobotsTxt (default: false): Ignore robots.txt restrictions

Use imageStartIndex and imageMaxCount to paginate through all images; the response
reports how many images and characters remain.
""".strip()

ResponseContent = Union[TextContent, ImageContent]

mcp = FastMCP(name="mcp-fetch")


@dataclass
class ServerState:
    config: FetchConfig
    store: ResourceStore
    ignore_robots_txt: bool = False


_state: Optional[ServerState] = None


def _publish_resource(resource: ImageResource) -> None:
    mcp.add_resource(
        FileResource(
            uri=resource.uri,
            name=resource.name,
            description=resource.description,
            mime_type=resource.mime_type,
            path=resource.file_path,
            is_binary=True,
        )
    )


def configure(
    config: Optional[FetchConfig] = None,
    ignore_robots_txt: bool = False,
) -> ServerState:
    """Create the resource store, register saved images and remember settings."""
    global _state
    config = config or load_config()
    store = ResourceStore(config.output_root)
    store.subscribe(_publish_resource)
    store.scan_existing()
    _state = ServerState(config=config, store=store, ignore_robots_txt=ignore_robots_txt)
    logger.info(
        "Server configured with %s",
        "ignore-robots-txt" if ignore_robots_txt else "respect-robots-txt",
    )
    return _state


def _get_state() -> ServerState:
    return _state or configure()


def build_response(
    url: str, result: FetchResult, options: FetchOptions
) -> List[ResponseContent]:
    """Frame a fetch result as MCP content blocks."""
    title = f": {result.title}" if result.title else ""
    blocks: List[ResponseContent] = [
        TextContent(
            type="text",
            text=f"Contents of {url}{title}:\n{paginate_content(result, options)}",
        )
    ]
    for image in result.images:
        if image.data:
            blocks.append(ImageContent(type="image", mimeType=image.mime_type, data=image.data))

    saved = [image.file_path for image in result.images if image.file_path]
    if saved:
        lines = "\n".join(
            f"Image {index} saved to: {path}" for index, path in enumerate(saved, start=1)
        )
        blocks.append(TextContent(type="text", text=f"\nSaved Images:\n{lines}"))
    return blocks


async def _notify_resources_changed(ctx: Context) -> None:
    try:
        await ctx.session.send_resource_list_changed()
    except Exception as exc:  # noqa: BLE001 - notification is best effort
        logger.warning("Failed to notify resource list changed: %s", exc)


@mcp.tool(name="imageFetch", description=TOOL_DESCRIPTION)
async def image_fetch(
    url: Annotated[str, Field(description="The URL to fetch")],
    ctx: Context,
    maxLength: Annotated[int, Field(gt=0, le=1_000_000)] = 20_000,
    startIndex: Annotated[int, Field(ge=0)] = 0,
    imageStartIndex: Annotated[int, Field(ge=0)] = 0,
    raw: bool = False,
    imageMaxCount: Annotated[int, Field(ge=0, le=10)] = 3,
    imageMaxHeight: Annotated[int, Field(ge=100, le=10_000)] = 4000,
    imageMaxWidth: Annotated[int, Field(ge=100, le=10_000)] = 1000,
    imageQuality: Annotated[int, Field(ge=1, le=100)] = 80,
    enableFetchImages: bool = False,
    allowCrossOriginImages: bool = True,
    saveImages: bool = True,
    returnBase64: bool = False,
    ignoreRobotsTxt: bool = False,
):
    """Fetch a URL, simplify it to markdown and optionally merge its images."""
    state = _get_state()
    options = FetchOptions(
        max_length=maxLength,
        start_index=startIndex,
        image_start_index=imageStartIndex,
        raw=raw,
        image_max_count=imageMaxCount,
        image_max_height=imageMaxHeight,
        image_max_width=imageMaxWidth,
        image_quality=imageQuality,
        enable_fetch_images=enableFetchImages,
        allow_cross_origin_images=allowCrossOriginImages,
        save_images=saveImages,
        return_base64=returnBase64,
        ignore_robots_txt=ignoreRobotsTxt,
    )
    known_resources = len(state.store)
    try:
        result = await asyncio.to_thread(
            fetch_url,
            url,
            options,
            state.config,
            store=state.store,
            respect_robots=not state.ignore_robots_txt,
        )
    except FetchError as exc:
        raise ToolError(f"Error [{exc.reason}]: {exc}") from exc

    if len(state.store) != known_resources:
        await _notify_resources_changed(ctx)
    return build_response(url, result, options)


def run(ignore_robots_txt: bool = False, verbose: bool = False) -> None:
    """Configure logging and serve over stdio."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    configure(ignore_robots_txt=ignore_robots_txt)
    mcp.run()

