"""Render trees — UI-agnostic presentation structures for proposals and nudges."""

from typing import Any, Dict, List

from pydantic import BaseModel


class RenderNode(BaseModel):
    type: str                               # Component name, e.g. "ConfidenceGroup"
    key: str                                # Stable key, unique within the tree
    props: Dict[str, Any] = {}
    children: List["RenderNode"] = []


class RenderTree(BaseModel):
    root: RenderNode

    def find(self, node_type: str) -> List[RenderNode]:
        """All nodes of a given type, depth first."""
        found = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.type == node_type:
                found.append(node)
            stack.extend(reversed(node.children))
        return found
