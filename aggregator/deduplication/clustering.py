"""Union-find over draft indices."""


class UnionFind:
    """Disjoint sets over 0..n-1 with path halving. The smaller index is the root."""

    def __init__(self, size: int):
        self.parent = list(range(size))

    def find(self, item: int) -> int:
        parent = self.parent
        while parent[item] != item:
            parent[item] = parent[parent[item]]
            item = parent[item]
        return item

    def union(self, left: int, right: int) -> bool:
        """Join two sets. Returns False when already joined."""
        left_root, right_root = self.find(left), self.find(right)
        if left_root == right_root:
            return False
        if right_root < left_root:
            left_root, right_root = right_root, left_root
        self.parent[right_root] = left_root
        return True

    def groups(self) -> list[list[int]]:
        """All sets, each sorted, ordered by their smallest member."""
        members: dict[int, list[int]] = {}
        for item in range(len(self.parent)):
            members.setdefault(self.find(item), []).append(item)
        return [members[root] for root in sorted(members)]
