"""Tests for generation assignment and relationship paths."""

import pytest
from conftest import make_person

from kinkonnect.errors import NotFoundError
from kinkonnect.generations import assign_generations, get_family_with_generations
from kinkonnect.pathfinder import find_relationship_path


def _lineage():
    """Great-grandparent -> grandparent -> parent -> root -> child, plus a spouse and sibling of root."""
    return [
        make_person("ggp", name="Great", gender="Male", child_ids=["gp"]),
        make_person("gp", name="Grand", gender="Male", father_id="ggp", child_ids=["p"]),
        make_person("p", name="Parent", gender="Male", father_id="gp", child_ids=["u1", "sib"]),
        make_person("u1", name="Root", gender="Male", father_id="p", spouse_ids=["sp"], child_ids=["ch"], sibling_ids=["sib"]),
        make_person("sp", name="Spouse", gender="Female", spouse_ids=["u1"], child_ids=["ch"]),
        make_person("sib", name="Sister", gender="Female", father_id="p", sibling_ids=["u1"]),
        make_person("ch", name="Child", gender="Male", father_id="u1", mother_id="sp"),
    ]


class TestAssignGenerations:
    """Tests for assign_generations."""

    def test_four_generation_lineage(self):
        """Lineage generations are -3..+1; spouse and sibling share the root's."""
        generations = assign_generations("u1", _lineage())
        assert [generations[i] for i in ("ggp", "gp", "p", "u1", "ch")] == [-3, -2, -1, 0, 1]
        assert generations["sp"] == 0
        assert generations["sib"] == 0

    def test_unreachable_is_none(self):
        """People not connected to the root have no generation."""
        people = [*_lineage(), make_person("x", name="Stranger")]
        assert assign_generations("u1", people)["x"] is None

    def test_missing_root_raises(self):
        """A root that is not in the tree raises NotFoundError."""
        with pytest.raises(NotFoundError):
            assign_generations("nobody", _lineage())

    def test_divorced_spouse_not_traversed(self):
        """Former spouses are not a generation edge."""
        people = [
            make_person("u1", name="Root", divorced_spouse_ids=["ex"]),
            make_person("ex", name="Ex", divorced_spouse_ids=["u1"]),
        ]
        assert assign_generations("u1", people)["ex"] is None

    def test_first_assignment_wins(self):
        """A person reached again by a longer route keeps the first generation."""
        people = [
            make_person("u1", name="Root", child_ids=["c"], sibling_ids=["c"]),
            make_person("c", name="Odd", sibling_ids=["u1"]),
        ]
        assert assign_generations("u1", people)["c"] == 1

    async def test_family_with_generations(self, family_store):
        """Each record from the store carries its generation."""
        records = await get_family_with_generations(family_store, "u1")
        generations = {r["id"]: r["generation"] for r in records}
        assert records[0]["id"] == "u1"
        assert generations == {"u1": 0, "f1": -1, "m1": -1, "s1": 0, "c1": 1, "b1": 0}

    async def test_family_with_generations_skips_alternates(self, family_store):
        """Alternate profiles are left out."""
        await family_store.commit(family_store.batch().update("u1", "b1", {"is_alternate_profile": True}))
        records = await get_family_with_generations(family_store, "u1")
        assert "b1" not in {r["id"] for r in records}

    async def test_family_with_generations_missing_profile(self, store):
        """A user without a profile raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await get_family_with_generations(store, "ghost")


class TestFindRelationshipPath:
    """Tests for find_relationship_path."""

    def test_self(self):
        """A person's path to themselves is a single Self step."""
        result = find_relationship_path("u1", "u1", _lineage())
        assert result.path_found is True
        assert result.generation_gap == 0
        assert [s.connection_to_previous for s in result.path] == ["Self"]

    def test_grandchild_to_great_grandparent(self):
        """Upward steps are labelled Father/Mother with a negative gap."""
        result = find_relationship_path("u1", "ggp", _lineage())
        assert [s.person_id for s in result.path] == ["u1", "p", "gp", "ggp"]
        assert [s.connection_to_previous for s in result.path] == ["Self", "Father", "Father", "Father"]
        assert result.generation_gap == -3

    def test_gendered_labels(self):
        """Children and siblings are labelled by gender."""
        assert find_relationship_path("u1", "sib", _lineage()).path[-1].connection_to_previous == "Sister"
        assert find_relationship_path("u1", "ch", _lineage()).path[-1].connection_to_previous == "Son"

    def test_in_law_path(self):
        """Spouse of a child is reached through the child."""
        people = [
            *_lineage(),
            make_person("dil", name="Daughter In Law", gender="Female", spouse_ids=["ch"]),
        ]
        people[-2].spouse_ids = ["dil"]
        result = find_relationship_path("u1", "dil", people)
        assert [s.connection_to_previous for s in result.path] == ["Self", "Son", "Spouse"]
        assert result.generation_gap == 1

    def test_divorced_spouse_is_traversed(self):
        """Former spouses are a path step even though generations skip them."""
        people = [
            make_person("u1", name="Root", divorced_spouse_ids=["ex"]),
            make_person("ex", name="Ex", divorced_spouse_ids=["u1"]),
        ]
        result = find_relationship_path("u1", "ex", people)
        assert result.path_found is True
        assert result.path[-1].connection_to_previous == "Spouse"
        # Generation assignment never reaches the same person
        assert assign_generations("u1", people)["ex"] is None

    def test_no_path(self):
        """Disconnected people give an empty result."""
        result = find_relationship_path("u1", "x", [*_lineage(), make_person("x", name="X")])
        assert result.path_found is False
        assert result.path == []
        assert result.generation_gap is None

    def test_missing_start(self):
        """An unknown start gives an empty result instead of raising."""
        assert find_relationship_path("nobody", "u1", _lineage()).path_found is False

    def test_describer_shape(self):
        """Path steps serialize to the camelCase describer contract."""
        step = find_relationship_path("u1", "p", _lineage()).to_dict()["path"][1]
        assert step == {
            "personId": "p",
            "personName": "Parent",
            "connectionToPrevious": "Father",
            "generationRelativeToStart": -1,
            "gender": "Male",
        }
