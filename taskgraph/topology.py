from typing import TYPE_CHECKING

from networkx import generate_network_text

if TYPE_CHECKING:  # pragma: no cover
    from networkx import DiGraph


class Topology:
    def __init__(self, *, digraph: "DiGraph", order: list[str]) -> None:
        self.digraph = digraph
        self.order = order

    def dependents(self, name: str) -> set[str]:
        """Tasks that directly depend on `name`."""
        return set(self.digraph.successors(name))

    def __str__(self) -> str:
        return "\n".join(generate_network_text(self.digraph, vertical_chains=True))
