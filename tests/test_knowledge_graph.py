import json

import pytest

from knowledge_graph import (
    ConceptGraphRepo,
    CorruptPropertiesError,
    Subgraph,
    build_subgraph,
    decode_properties,
    encode_properties,
    seed_concepts_if_missing,
)
from models import COL_CONCEPTS, COL_RELATIONSHIPS, ConceptEdge, ConceptNode


class InMemoryGraph:
    """Lookup callables over plain dicts, counting edge expansions per node."""

    def __init__(self, names, edges):
        self.nodes = {f"n-{name}": ConceptNode(id=f"n-{name}", name=name) for name in names}
        self.edges = [
            ConceptEdge(id=edge_id, source_id=f"n-{src}", target_id=f"n-{dst}", relationship_type="rel")
            for edge_id, src, dst in edges
        ]
        self.expanded = []

    def by_name(self, name):
        return next((n for n in self.nodes.values() if n.name == name), None)

    def by_id(self, node_id):
        return self.nodes.get(node_id)

    def from_source(self, node_id):
        self.expanded.append(node_id)
        return [e for e in self.edges if e.source_id == node_id]

    def to_target(self, node_id):
        return [e for e in self.edges if e.target_id == node_id]

    def build(self, seed, depth=2):
        return build_subgraph(
            seed,
            depth,
            lookup_node_by_name=self.by_name,
            lookup_edges_by_source=self.from_source,
            lookup_edges_by_target=self.to_target,
            lookup_node_by_id=self.by_id,
        )


def _names(graph: Subgraph):
    return [node.name for node in graph.nodes]


def _edge_ids(graph: Subgraph):
    return [edge.id for edge in graph.edges]


class TestBuildSubgraph:
    def test_missing_seed_gives_empty_graph(self):
        graph = InMemoryGraph(["A"], []).build("Z")
        assert graph.nodes == [] and graph.edges == []

    def test_depth_zero_returns_seed_only(self):
        g = InMemoryGraph(["A", "B"], [("e1", "A", "B")])
        graph = g.build("A", 0)
        assert _names(graph) == ["A"]
        assert graph.edges == []
        assert g.expanded == []

    def test_none_depth_defaults_to_two(self):
        g = InMemoryGraph(["A", "B", "C", "D"], [("e1", "A", "B"), ("e2", "B", "C"), ("e3", "C", "D")])
        graph = g.build("A", None)
        assert _names(graph) == ["A", "B", "C"]
        assert _edge_ids(graph) == ["e1", "e2"]

    def test_negative_depth_is_rejected(self):
        with pytest.raises(ValueError):
            InMemoryGraph(["A"], []).build("A", -1)

    def test_follows_incoming_edges(self):
        g = InMemoryGraph(["A", "B", "C"], [("e1", "B", "A"), ("e2", "C", "B")])
        graph = g.build("A", 2)
        assert _names(graph) == ["A", "B", "C"]

    def test_nodes_at_max_depth_are_not_expanded(self):
        g = InMemoryGraph(["A", "B", "C"], [("e1", "A", "B"), ("e2", "B", "C")])
        graph = g.build("A", 1)
        assert _names(graph) == ["A", "B"]
        assert _edge_ids(graph) == ["e1"]
        assert g.expanded == ["n-A"]

    def test_cycle_terminates_and_each_node_appears_once(self):
        g = InMemoryGraph(["A", "B", "C"], [("e1", "A", "B"), ("e2", "B", "C"), ("e3", "C", "A")])
        graph = g.build("A", 5)
        assert sorted(_names(graph)) == ["A", "B", "C"]
        assert sorted(_edge_ids(graph)) == ["e1", "e2", "e3"]

    def test_edge_between_two_expanded_nodes_emitted_once(self):
        g = InMemoryGraph(["A", "B"], [("e1", "A", "B")])
        graph = g.build("A", 3)
        assert _edge_ids(graph) == ["e1"]

    def test_dangling_endpoint_keeps_edge_but_not_node(self):
        g = InMemoryGraph(["A"], [])
        g.edges.append(ConceptEdge(id="e1", source_id="n-A", target_id="n-gone", relationship_type="rel"))
        graph = g.build("A", 2)
        assert _names(graph) == ["A"]
        assert _edge_ids(graph) == ["e1"]

    def test_lookup_errors_propagate(self):
        def boom(_):
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError, match="store down"):
            build_subgraph(
                "A",
                lookup_node_by_name=boom,
                lookup_edges_by_source=boom,
                lookup_edges_by_target=boom,
                lookup_node_by_id=boom,
            )

    def test_to_dict_is_json_ready(self):
        g = InMemoryGraph(["A", "B"], [("e1", "A", "B")])
        payload = g.build("A").to_dict()
        assert json.loads(json.dumps(payload))["edges"][0]["id"] == "e1"


class TestPropertiesCodec:
    def test_empty_values_decode_to_empty_dict(self):
        assert decode_properties(None) == {}
        assert decode_properties("") == {}

    def test_mapping_passes_through(self):
        assert decode_properties({"a": 1}) == {"a": 1}

    def test_encoded_text_decodes(self):
        assert decode_properties(encode_properties({"peak_hours": 24})) == {"peak_hours": 24}

    def test_non_object_json_is_rejected(self):
        with pytest.raises(CorruptPropertiesError):
            decode_properties("[1, 2]")

    def test_invalid_json_is_a_data_error_not_a_value_error(self):
        with pytest.raises(CorruptPropertiesError) as excinfo:
            decode_properties("{not json")
        assert not isinstance(excinfo.value, ValueError)


class TestConceptGraphRepo:
    def test_properties_are_stored_as_text(self, db):
        repo = ConceptGraphRepo(db)
        node = repo.add_concept("Aspirin", "drug", properties={"class": "antiplatelet"})
        assert isinstance(db.tables[COL_CONCEPTS][0]["properties"], str)
        assert repo.get_by_id(node.id).properties == {"class": "antiplatelet"}

    def test_blank_name_is_rejected(self, db):
        with pytest.raises(ValueError):
            ConceptGraphRepo(db).add_concept("  ", "drug")

    def test_concept_graph_wires_store_lookups(self, db):
        repo = ConceptGraphRepo(db)
        mi = repo.add_concept("Myocardial Infarction", "disease")
        pain = repo.add_concept("Chest Pain", "symptom")
        aspirin = repo.add_concept("Aspirin", "drug")
        repo.add_relationship(mi.id, pain.id, "presents_with")
        repo.add_relationship(aspirin.id, mi.id, "treats")

        graph = repo.concept_graph("Myocardial Infarction", 1)
        assert {n.name for n in graph.nodes} == {"Myocardial Infarction", "Chest Pain", "Aspirin"}
        assert {e.relationship_type for e in graph.edges} == {"presents_with", "treats"}

    def test_list_concepts_by_category(self, db):
        repo = ConceptGraphRepo(db)
        repo.add_concept("Troponin", "lab_test")
        repo.add_concept("Aspirin", "drug")
        assert [c.name for c in repo.list_concepts(category="drug")] == ["Aspirin"]


def test_seeding_is_idempotent(db):
    first = seed_concepts_if_missing(db)
    assert first > 0
    concept_count = len(db.tables[COL_CONCEPTS])
    edge_count = len(db.tables[COL_RELATIONSHIPS])

    assert seed_concepts_if_missing(db) == 0
    assert len(db.tables[COL_CONCEPTS]) == concept_count
    assert len(db.tables[COL_RELATIONSHIPS]) == edge_count


def test_seeded_graph_is_traversable(db):
    seed_concepts_if_missing(db)
    graph = ConceptGraphRepo(db).concept_graph("Myocardial Infarction")
    names = {n.name for n in graph.nodes}
    assert "Chest Pain" in names
    assert "Troponin" in names


def test_missing_seed_file_raises(db, tmp_path):
    with pytest.raises(RuntimeError):
        seed_concepts_if_missing(db, str(tmp_path / "nope.json"))


def test_seed_relationship_with_unknown_endpoint_is_skipped(db, tmp_path):
    seed = tmp_path / "seed.json"
    seed.write_text(
        json.dumps(
            {
                "concepts": [{"name": "A", "category": "x"}],
                "relationships": [{"source": "A", "target": "Missing", "type": "causes"}],
            }
        )
    )
    assert seed_concepts_if_missing(db, str(seed)) == 1
    assert db.tables.get(COL_RELATIONSHIPS, []) == []
