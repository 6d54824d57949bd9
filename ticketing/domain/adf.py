import re

from pydantic import BaseModel, Field
from typing import Any, Literal

ADF_BLOCK_TYPES = ("paragraph", "heading", "blockquote", "codeBlock", "listItem")
"""
Container nodes whose text is followed by a newline.
"""

ADF_RULE_MARKER = "\n---\n"

REGEX_EXCESS_NEWLINES = r"\n{3,}"


##
## Nodes
##


class AdfText(BaseModel, frozen=True):
    type: Literal["text"] = "text"
    text: str = ""


class AdfHardBreak(BaseModel, frozen=True):
    type: Literal["hardBreak"] = "hardBreak"


class AdfRule(BaseModel, frozen=True):
    type: Literal["rule"] = "rule"


class AdfMedia(BaseModel, frozen=True):
    type: Literal["media"] = "media"
    media_id: str | None = None


class AdfMediaSingle(BaseModel, frozen=True):
    type: Literal["mediaSingle"] = "mediaSingle"
    content: "list[AdfNode]" = Field(default_factory=list)


class AdfContainer(BaseModel, frozen=True):
    """
    Any other node: its children are walked when it has some, otherwise it
    contributes nothing (e.g., emoji, mentions or unknown leaves).
    """

    type: str
    content: "list[AdfNode] | None" = None


AdfNode = AdfText | AdfHardBreak | AdfRule | AdfMedia | AdfMediaSingle | AdfContainer

AdfMediaSingle.model_rebuild()
AdfContainer.model_rebuild()


def parse_adf_node(data: Any) -> AdfNode | None:
    """
    Parse a loosely-typed ADF node.  Returns None for values that are not
    nodes, which are skipped by the walk.
    """
    if not isinstance(data, dict):
        return None

    node_type = data.get("type")
    match node_type:
        case "text":
            text = data.get("text")
            return AdfText(text=text if isinstance(text, str) else "")
        case "hardBreak":
            return AdfHardBreak()
        case "rule":
            return AdfRule()
        case "media":
            attrs = data.get("attrs")
            media_id = attrs.get("id") if isinstance(attrs, dict) else None
            return AdfMedia(media_id=str(media_id) if media_id else None)
        case "mediaSingle":
            return AdfMediaSingle(content=_parse_adf_children(data.get("content")))
        case _:
            content = data.get("content")
            return AdfContainer(
                type=node_type if isinstance(node_type, str) else "",
                content=(
                    _parse_adf_children(content) if isinstance(content, list) else None
                ),
            )


def _parse_adf_children(content: Any) -> list[AdfNode]:
    if not isinstance(content, list):
        return []
    return [node for item in content if (node := parse_adf_node(item)) is not None]


##
## Extraction
##


class AdfExtract(BaseModel, frozen=True):
    text: str
    media_ids: list[str]


def extract_adf_content(body: Any) -> AdfExtract:
    """
    Flatten a rich-document body (a comment or a description) into plain text,
    collecting the IDs of the embedded media in document order.

    Legacy bodies that are plain strings are returned unmodified.
    """
    if isinstance(body, str):
        return AdfExtract(text=body, media_ids=[])
    if not isinstance(body, dict) or not body.get("content"):
        return AdfExtract(text="", media_ids=[])

    media_ids: list[str] = []
    text = "".join(
        _walk_adf_node(node, media_ids)
        for node in _parse_adf_children(body["content"])
    )
    text = re.sub(REGEX_EXCESS_NEWLINES, "\n\n", text).strip()
    return AdfExtract(text=text, media_ids=media_ids)


def _walk_adf_node(node: AdfNode, media_ids: list[str]) -> str:
    match node:
        case AdfText(text=text):
            return text
        case AdfHardBreak():
            return "\n"
        case AdfRule():
            return ADF_RULE_MARKER
        case AdfMedia(media_id=media_id):
            if media_id:
                media_ids.append(media_id)
            return ""
        case AdfMediaSingle(content=content):
            return "".join(_walk_adf_node(child, media_ids) for child in content)
        case AdfContainer(content=None):
            return ""
        case AdfContainer(type=node_type, content=content):
            inner = "".join(_walk_adf_node(child, media_ids) for child in content)
            return f"{inner}\n" if node_type in ADF_BLOCK_TYPES else inner


##
## Builder
##


def adf_paragraph(text: str) -> dict[str, Any]:
    """
    The minimal document accepted by Jira for descriptions and comments: a
    single paragraph holding the text as-is.
    """
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": text}],
            }
        ],
    }
