from __future__ import annotations

import json
import logging
import os
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Set, Tuple

from db import SupabaseClient
from models import COL_CONCEPTS, COL_RELATIONSHIPS, ConceptEdge, ConceptNode, now_ms

logger = logging.getLogger(__name__)

DEFAULT_DEPTH = 2

NodeByName = Callable[[str], Optional[ConceptNode]]
NodeById = Callable[[str], Optional[ConceptNode]]
EdgesFor = Callable[[str], List[ConceptEdge]]


def encode_properties(mapping: Optional[Mapping[str, Any]]) -> str:
    return json.dumps(dict(mapping or {}))


class CorruptPropertiesError(RuntimeError):
    """Stored concept or relationship properties are not a JSON object."""


def decode_properties(raw: Any) -> Dict[str, Any]:
    if not raw:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise CorruptPropertiesError(f"Stored properties are not valid JSON: {raw!r:.80}") from exc
    if not isinstance(decoded, dict):
        raise CorruptPropertiesError("Stored properties must decode to a JSON object")
    return decoded


@dataclass
class Subgraph:
    nodes: List[ConceptNode] = field(default_factory=list)
    edges: List[ConceptEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.model_dump() for node in self.nodes],
            "edges": [edge.model_dump() for edge in self.edges],
        }


def build_subgraph(
    seed_name: str,
    max_depth: Optional[int] = DEFAULT_DEPTH,
    *,
    lookup_node_by_name: NodeByName,
    lookup_edges_by_source: EdgesFor,
    lookup_edges_by_target: EdgesFor,
    lookup_node_by_id: NodeById,
) -> Subgraph:
    """
    Breadth-first neighbourhood of ``seed_name`` following relationships in
    both directions.

    Depth only gates expansion: a node first reached at depth ``max_depth`` is
    included but its own relationships are never fetched, so edges are only
    collected from nodes at depth < ``max_depth``. Each relationship is
    emitted once even when both of its endpoints get expanded. A relationship
    pointing at a concept that no longer exists is kept, the missing endpoint
    is not.
    """
    if max_depth is None:
        max_depth = DEFAULT_DEPTH
    if max_depth < 0:
        raise ValueError(f"max_depth must be >= 0, got {max_depth}")

    seed = lookup_node_by_name(seed_name)
    if seed is None:
        return Subgraph()

    graph = Subgraph(nodes=[seed])
    visited: Set[str] = {seed.id}
    seen_edges: Set[str] = set()
    queue: Deque[Tuple[str, int]] = deque([(seed.id, 0)])

    while queue:
        node_id, depth = queue.popleft()
        if depth >= max_depth:
            continue

        directions = (
            (lookup_edges_by_source(node_id), "target_id"),
            (lookup_edges_by_target(node_id), "source_id"),
        )
        for edges, far_end in directions:
            for edge in edges:
                if edge.id not in seen_edges:
                    seen_edges.add(edge.id)
                    graph.edges.append(edge)

                other_id = getattr(edge, far_end)
                if other_id in visited:
                    continue
                visited.add(other_id)
                other = lookup_node_by_id(other_id)
                if other is None:
                    logger.debug("Relationship %s points at missing concept %s", edge.id, other_id)
                    continue
                graph.nodes.append(other)
                queue.append((other_id, depth + 1))

    return graph


def _concept_row_to_node(row: Dict[str, Any]) -> ConceptNode:
    return ConceptNode(
        id=str(row.get("id")),
        name=row.get("name", ""),
        category=row.get("category") or "",
        description=row.get("description") or "",
        external_code=row.get("external_code"),
        properties=decode_properties(row.get("properties")),
    )


def _relationship_row_to_edge(row: Dict[str, Any]) -> ConceptEdge:
    return ConceptEdge(
        id=str(row.get("id")),
        source_id=str(row.get("source_id")),
        target_id=str(row.get("target_id")),
        relationship_type=row.get("relationship_type", ""),
        properties=decode_properties(row.get("properties")),
    )


@dataclass
class ConceptGraphRepo:
    db: SupabaseClient

    def add_concept(
        self,
        name: str,
        category: str,
        description: str = "",
        *,
        external_code: Optional[str] = None,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> ConceptNode:
        name = (name or "").strip()
        if not name:
            raise ValueError("Concept name is required")
        row = {
            "id": str(uuid.uuid4()),
            "name": name,
            "category": category,
            "description": description,
            "external_code": external_code,
            "properties": encode_properties(properties),
            "created_at": now_ms(),
        }
        inserted = self.db.table(COL_CONCEPTS).insert(row)
        return _concept_row_to_node(inserted[0] if inserted else row)

    def add_relationship(
        self,
        source_id: str,
        target_id: str,
        relationship_type: str,
        *,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> ConceptEdge:
        if not relationship_type:
            raise ValueError("relationship_type is required")
        row = {
            "id": str(uuid.uuid4()),
            "source_id": source_id,
            "target_id": target_id,
            "relationship_type": relationship_type,
            "properties": encode_properties(properties),
            "created_at": now_ms(),
        }
        inserted = self.db.table(COL_RELATIONSHIPS).insert(row)
        return _relationship_row_to_edge(inserted[0] if inserted else row)

    def get_by_name(self, name: str) -> Optional[ConceptNode]:
        rows = self.db.table(COL_CONCEPTS).select(filters={"name": name}, limit=1)
        if not rows:
            return None
        return _concept_row_to_node(rows[0])

    def get_by_id(self, concept_id: str) -> Optional[ConceptNode]:
        rows = self.db.table(COL_CONCEPTS).select(filters={"id": concept_id}, limit=1)
        if not rows:
            return None
        return _concept_row_to_node(rows[0])

    def list_concepts(self, *, category: Optional[str] = None, limit: int = 200) -> List[ConceptNode]:
        filters = {"category": category} if category else None
        rows = self.db.table(COL_CONCEPTS).select(filters=filters, order=("name", "asc"), limit=limit)
        return [_concept_row_to_node(row) for row in rows]

    def edges_from(self, concept_id: str) -> List[ConceptEdge]:
        rows = self.db.table(COL_RELATIONSHIPS).select(filters={"source_id": concept_id})
        return [_relationship_row_to_edge(row) for row in rows]

    def edges_to(self, concept_id: str) -> List[ConceptEdge]:
        rows = self.db.table(COL_RELATIONSHIPS).select(filters={"target_id": concept_id})
        return [_relationship_row_to_edge(row) for row in rows]

    def concept_graph(self, name: str, depth: Optional[int] = None) -> Subgraph:
        return build_subgraph(
            name,
            depth,
            lookup_node_by_name=self.get_by_name,
            lookup_edges_by_source=self.edges_from,
            lookup_edges_by_target=self.edges_to,
            lookup_node_by_id=self.get_by_id,
        )


def seed_concepts_if_missing(db: Any, seed_path: Optional[str] = None) -> int:
    """
    Reads the seed concept graph and inserts concepts (matched by name) and
    relationships (matched by endpoints and type) that are not present yet.
    Returns the number of inserted rows.
    """
    if seed_path is None:
        seed_path = os.path.join(os.path.dirname(__file__), "concepts", "seed_concepts.json")
    if not os.path.exists(seed_path):
        raise RuntimeError(f"Seed file not found: {seed_path}")

    with open(seed_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise RuntimeError("seed_concepts.json must be an object with 'concepts' and 'relationships'")

    repo = ConceptGraphRepo(db)
    inserted = 0
    ids_by_name: Dict[str, str] = {}

    for concept in data.get("concepts") or []:
        if not isinstance(concept, dict) or not concept.get("name"):
            continue
        name = concept["name"]
        existing = repo.get_by_name(name)
        if existing is None:
            existing = repo.add_concept(
                name,
                concept.get("category", ""),
                concept.get("description", ""),
                external_code=concept.get("external_code"),
                properties=concept.get("properties"),
            )
            inserted += 1
        ids_by_name[name] = existing.id

    for rel in data.get("relationships") or []:
        if not isinstance(rel, dict):
            continue
        source_id = ids_by_name.get(rel.get("source", ""))
        target_id = ids_by_name.get(rel.get("target", ""))
        rel_type = rel.get("type", "")
        if not source_id or not target_id or not rel_type:
            logger.warning("Skipping seed relationship with unknown endpoint: %s", rel)
            continue
        already = any(
            edge.target_id == target_id and edge.relationship_type == rel_type
            for edge in repo.edges_from(source_id)
        )
        if already:
            continue
        repo.add_relationship(source_id, target_id, rel_type, properties=rel.get("properties"))
        inserted += 1

    if inserted:
        logger.info("Seeded %d concept graph rows", inserted)
    return inserted


__all__ = [
    "ConceptGraphRepo",
    "CorruptPropertiesError",
    "DEFAULT_DEPTH",
    "Subgraph",
    "build_subgraph",
    "decode_properties",
    "encode_properties",
    "seed_concepts_if_missing",
]
