"""Disjoint-set forest over integer indices."""


class UnionFind:
    """Path compression plus union by rank. On equal rank the lower index wins the root."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, a: int, b: int) -> bool:
        """Join the sets of a and b. Returns False when they were already joined."""
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return False
        if self.rank[root_a] < self.rank[root_b]:
            self.parent[root_a] = root_b
        elif self.rank[root_a] > self.rank[root_b]:
            self.parent[root_b] = root_a
        else:
            if root_b < root_a:
                root_a, root_b = root_b, root_a
            self.parent[root_b] = root_a
            self.rank[root_a] += 1
        return True

    def groups(self) -> list[list[int]]:
        """Members per set, each sorted, ordered by lowest member."""
        by_root: dict[int, list[int]] = {}
        for x in range(len(self.parent)):
            by_root.setdefault(self.find(x), []).append(x)
        return sorted(by_root.values(), key=lambda members: members[0])
