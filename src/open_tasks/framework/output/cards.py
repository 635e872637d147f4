"""
Formatted cards for SUMMARY-level output.

A card is an immutable description of a block of structured output
(a message, key/value pairs, a list, a table, or a tree).  Commands hand
cards to their TaskLogger; the console synk renders them with Rich and
the recording synk keeps them as data.

Usage::

    logger.card(KeyValueCard("Extraction", {"matches": 3, "pattern": r"\\d+"}, style="success"))
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

CardStyle = Literal["info", "success", "warning", "error", "dim", "default"]

BORDER_STYLES: dict[str, str] = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "dim": "bright_black",
    "default": "white",
}


@runtime_checkable
class Card(Protocol):
    """Anything the output synk can render at SUMMARY level."""

    title: str
    style: CardStyle

    def render(self) -> RenderableType: ...

    def to_dict(self) -> dict[str, Any]: ...


def _panel(body: RenderableType, title: str, style: str) -> Panel:
    return Panel(body, title=f"[bold]{title}[/bold]" if title else None, border_style=BORDER_STYLES.get(style, "white"))


@dataclass(frozen=True)
class MessageCard:
    """A titled block of free text."""

    title: str
    message: str
    style: CardStyle = "default"

    def render(self) -> RenderableType:
        return _panel(Text(self.message), self.title, self.style)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "message", "title": self.title, "message": self.message, "style": self.style}


@dataclass(frozen=True)
class KeyValueCard:
    """Aligned key/value pairs."""

    title: str
    items: Mapping[str, Any]
    style: CardStyle = "default"

    def render(self) -> RenderableType:
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="cyan", no_wrap=True)
        grid.add_column(overflow="fold")
        for key, value in self.items.items():
            grid.add_row(Text(str(key)), Text(str(value)))
        return _panel(grid, self.title, self.style)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "key_value", "title": self.title, "items": dict(self.items), "style": self.style}


@dataclass(frozen=True)
class ListCard:
    """A bulleted or numbered list."""

    title: str
    items: Sequence[str]
    ordered: bool = False
    style: CardStyle = "default"

    def render(self) -> RenderableType:
        lines = [
            Text(f"{i}. {item}" if self.ordered else f"• {item}")
            for i, item in enumerate(self.items, start=1)
        ]
        return _panel(Group(*lines) if lines else Text("(empty)", style="dim"), self.title, self.style)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "list", "title": self.title, "items": list(self.items), "ordered": self.ordered, "style": self.style}


@dataclass(frozen=True)
class TableCard:
    """Column headers plus rows, with an optional footer line."""

    title: str
    columns: Sequence[str]
    rows: Sequence[Sequence[Any]]
    footer: str | None = None
    style: CardStyle = "default"

    def render(self) -> RenderableType:
        table = Table(title=self.title or None, border_style=BORDER_STYLES.get(self.style, "white"), caption=self.footer)
        for col in self.columns:
            table.add_column(str(col), overflow="fold")
        for row in self.rows:
            table.add_row(*(Text(str(v)) for v in row))
        return table

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "table",
            "title": self.title,
            "columns": list(self.columns),
            "rows": [list(r) for r in self.rows],
            "footer": self.footer,
            "style": self.style,
        }


@dataclass(frozen=True)
class TreeNode:
    """One node of a :class:`TreeCard`."""

    label: str
    children: tuple[TreeNode, ...] = field(default_factory=tuple)
    icon: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"label": self.label}
        if self.icon:
            result["icon"] = self.icon
        if self.children:
            result["children"] = [c.to_dict() for c in self.children]
        return result


@dataclass(frozen=True)
class TreeCard:
    """A hierarchy rendered as an indented tree."""

    title: str
    root: TreeNode
    style: CardStyle = "default"

    def render(self) -> RenderableType:
        tree = Tree(self._label(self.root))
        self._add_children(tree, self.root)
        return _panel(tree, self.title, self.style)

    @staticmethod
    def _label(node: TreeNode) -> Text:
        return Text(f"{node.icon} {node.label}" if node.icon else node.label)

    def _add_children(self, branch: Tree, node: TreeNode) -> None:
        for child in node.children:
            self._add_children(branch.add(self._label(child)), child)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "tree", "title": self.title, "root": self.root.to_dict(), "style": self.style}
