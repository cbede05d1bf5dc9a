from typing import Any, Dict, Iterator, List, Optional, Sequence


class DependencyTree:
    """Read-only view over an `npm ls --json` style nested tree.

    Every node is a dict whose optional `dependencies` field maps a child
    package name to the child node. Nodes are addressed by the sequence of
    names leading to them from the root.
    """

    def __init__(self, data: Dict[str, Any]) -> None:
        self.data = data

    @property
    def name(self) -> str:
        return self.data.get("name", "")

    @property
    def version(self) -> str:
        return self.data.get("version", "")

    @staticmethod
    def _deps(node: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not node:
            return {}
        return node.get("dependencies") or {}

    def resolve(self, path: Sequence[str]) -> Optional[Dict[str, Any]]:
        node = self.data
        for name in path:
            node = self._deps(node).get(name)
            if node is None:
                return None
        return node

    def children(self, path: Sequence[str]) -> List[str]:
        node = self.resolve(path)
        if node is None:
            return []
        return list(self._deps(node))

    def iter_paths(self) -> Iterator[List[str]]:
        """Yields the path to every node below the root.

        Uses an explicit stack so that deep trees do not hit the recursion
        limit. Siblings are yielded in key order; a node's subtree is
        explored after all its siblings have been yielded, last sibling first.
        """
        stack = [(self.data, [])]
        while stack:
            node, path = stack.pop()
            for name, child in self._deps(node).items():
                child_path = path + [name]
                yield child_path
                stack.append((child, child_path))

    def __len__(self) -> int:
        return sum(1 for _ in self.iter_paths())
