"""Content server node model."""

from __future__ import annotations

from enum import StrEnum

from pycontent.models._base import ContentBaseModel


class NodeType(StrEnum):
    FOLDER = "folder"
    DOCUMENT = "document"
    LINK = "link"


class Node(ContentBaseModel):
    """A folder, document or link on the content server.

    Parameters
    ----------
    id : int
        Node identifier, unique on the server.
    name : str
        Display name.
    type : NodeType
        Node kind.
    parent_id : int or None
        Containing folder; ``None`` for the root.
    owner : str
        Owner display name.
    created : str
        Creation date as served (ISO ``YYYY-MM-DD``).
    description : str
        Free text description.
    size : str or None
        Human readable size, documents only.
    """

    id: int
    name: str
    type: NodeType
    parent_id: int | None = None
    owner: str = ""
    created: str = ""
    description: str = ""
    size: str | None = None

    @property
    def is_folder(self) -> bool:
        return self.type == NodeType.FOLDER

    @property
    def is_document(self) -> bool:
        return self.type == NodeType.DOCUMENT
