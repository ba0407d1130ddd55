"""Tests for relationship graph mutations."""

import pytest
from conftest import assert_symmetric, make_person, people_by_id, seed

from kinkonnect.errors import InvalidArgumentError, NotFoundError
from kinkonnect.mutations import (
    add_family_member,
    delete_family_member,
    delete_user_account,
    link_parent_to_profile,
    set_anniversary_date,
    update_family_member,
    update_user_profile,
)


async def _tree(store, owner_id="u1"):
    return people_by_id(await store.get_tree(owner_id))


class TestAddParent:
    """Tests for adding a father or mother."""

    async def test_mother_marries_father_and_adopts_siblings(self, store):
        """A new mother marries the existing father and mothers the anchor's siblings."""
        await seed(
            store,
            make_person("u1", name="Ravi", gender="Male", father_id="f1", sibling_ids=["b1"]),
            make_person("f1", name="Gopal", gender="Male", child_ids=["u1", "b1"]),
            make_person("b1", name="Mohan", gender="Male", father_id="f1", sibling_ids=["u1"]),
        )
        mother = await add_family_member(store, "u1", {"name": "Lakshmi", "gender": "Female"}, "u1", "Mother")

        tree = await _tree(store)
        assert tree["u1"].mother_id == mother.id
        assert tree["b1"].mother_id == mother.id
        assert set(tree[mother.id].child_ids) == {"u1", "b1"}
        assert tree[mother.id].spouse_ids == ["f1"]
        assert tree["f1"].spouse_ids == [mother.id]
        assert_symmetric(list(tree.values()))

    async def test_existing_parent_rejected(self, family_store):
        """Adding a father to someone who has one is rejected without writes."""
        before = await family_store.get_tree("u1")
        with pytest.raises(InvalidArgumentError, match="already has a father"):
            await add_family_member(family_store, "u1", {"name": "Other"}, "u1", "Father")
        assert await family_store.get_tree("u1") == before

    async def test_sibling_moves_off_previous_parent(self, store):
        """A sibling pointed at another father is unlinked from that father's children."""
        await seed(
            store,
            make_person("u1", name="Ravi", sibling_ids=["b1"]),
            make_person("old", name="Old", child_ids=["b1"]),
            make_person("b1", name="Mohan", father_id="old", sibling_ids=["u1"]),
        )
        father = await add_family_member(store, "u1", {"name": "Gopal", "gender": "Male"}, "u1", "Father")
        tree = await _tree(store)
        assert tree["b1"].father_id == father.id
        assert "b1" not in tree["old"].child_ids


class TestAddSpouse:
    """Tests for adding a spouse."""

    async def test_retroactive_child_relink(self, store):
        """A new wife fills the empty mother slot of the husband's existing child."""
        await seed(
            store,
            make_person("u1", name="Ravi", gender="Male", child_ids=["c1"]),
            make_person("c1", name="Arun", gender="Male", father_id="u1"),
        )
        wife = await add_family_member(
            store, "u1", {"name": "Priya", "gender": "Female", "anniversary_date": "2010-06-01"}, "u1", "Spouse"
        )

        tree = await _tree(store)
        assert tree["c1"].mother_id == wife.id
        assert tree[wife.id].child_ids == ["c1"]
        assert tree[wife.id].spouse_ids == ["u1"]
        assert tree["u1"].spouse_ids == [wife.id]
        assert tree["u1"].anniversary_dates == {wife.id: "2010-06-01"}
        assert tree[wife.id].anniversary_dates == {"u1": "2010-06-01"}

    async def test_child_with_both_parents_untouched(self, family_store):
        """Children who already have both parents keep them."""
        second = await add_family_member(family_store, "u1", {"name": "Meena", "gender": "Female"}, "u1", "Spouse")
        tree = await _tree(family_store)
        assert tree["c1"].mother_id == "s1"
        assert tree[second.id].child_ids == []
        assert set(tree["u1"].spouse_ids) == {"s1", second.id}

    async def test_same_gender_spouse_no_relink(self, store):
        """A spouse of the anchor's own gender fills no parent slot."""
        await seed(
            store,
            make_person("u1", name="Ravi", gender="Male", child_ids=["c1"]),
            make_person("c1", name="Arun", father_id="u1"),
        )
        await add_family_member(store, "u1", {"name": "Sam", "gender": "Male"}, "u1", "Spouse")
        assert (await _tree(store))["c1"].mother_id is None

    async def test_other_gender_anchor_fills_either_slot(self, store):
        """An anchor of gender Other relinks a child whose empty slot matches the spouse."""
        await seed(
            store,
            make_person("u1", name="Alex", gender="Other", child_ids=["c1"]),
            make_person("c1", name="Kid", mother_id="u1"),
        )
        husband = await add_family_member(store, "u1", {"name": "Raj", "gender": "Male"}, "u1", "Spouse")
        assert (await _tree(store))["c1"].father_id == husband.id

    async def test_anniversary_only_for_spouse(self, family_store):
        """A non-spouse relative never keeps an anniversary date."""
        sister = await add_family_member(
            family_store, "u1", {"name": "Uma", "gender": "Female", "anniversary_date": "2000-01-01"}, "u1", "Sister"
        )
        assert sister.anniversary_date is None


class TestAddSibling:
    """Tests for adding a brother or sister."""

    async def test_sibling_shares_parents_and_clique(self, family_store):
        """A new sister gets the anchor's parents and every sibling link."""
        sister = await add_family_member(family_store, "u1", {"name": "Uma", "gender": "Female"}, "u1", "Sister")
        tree = await _tree(family_store)

        assert (tree[sister.id].father_id, tree[sister.id].mother_id) == ("f1", "m1")
        assert set(tree[sister.id].sibling_ids) == {"u1", "b1"}
        assert sister.id in tree["u1"].sibling_ids
        assert sister.id in tree["b1"].sibling_ids
        assert sister.id in tree["f1"].child_ids
        assert sister.id in tree["m1"].child_ids
        assert_symmetric(list(tree.values()))


class TestAddChild:
    """Tests for adding a son or daughter."""

    async def test_single_spouse_is_co_parent(self, family_store):
        """With one spouse, the spouse is the other parent and existing children become siblings."""
        daughter = await add_family_member(family_store, "u1", {"name": "Divya", "gender": "Female"}, "u1", "Daughter")
        tree = await _tree(family_store)

        assert (tree[daughter.id].father_id, tree[daughter.id].mother_id) == ("u1", "s1")
        assert daughter.id in tree["u1"].child_ids
        assert daughter.id in tree["s1"].child_ids
        assert tree[daughter.id].sibling_ids == ["c1"]
        assert tree["c1"].sibling_ids == [daughter.id]
        assert_symmetric(list(tree.values()))

    async def test_multiple_spouses_need_co_parent(self, family_store):
        """More than one spouse without a chosen co-parent is rejected."""
        second = await add_family_member(family_store, "u1", {"name": "Meena", "gender": "Female"}, "u1", "Spouse")
        with pytest.raises(InvalidArgumentError, match="more than one spouse"):
            await add_family_member(family_store, "u1", {"name": "Kid"}, "u1", "Son")

        son = await add_family_member(family_store, "u1", {"name": "Kid", "gender": "Male"}, "u1", "Son", co_parent_id=second.id)
        tree = await _tree(family_store)
        assert tree[son.id].mother_id == second.id
        assert tree[son.id].sibling_ids == []
        assert son.id in tree[second.id].child_ids

    async def test_missing_co_parent(self, family_store):
        """A co-parent that does not exist aborts with NotFoundError."""
        with pytest.raises(NotFoundError):
            await add_family_member(family_store, "u1", {"name": "Kid"}, "u1", "Son", co_parent_id="ghost")

    async def test_mother_anchor(self, family_store):
        """A female anchor is the mother; her male spouse is the father."""
        son = await add_family_member(family_store, "u1", {"name": "Kid", "gender": "Male"}, "s1", "Son")
        child = (await _tree(family_store))[son.id]
        assert (child.father_id, child.mother_id) == ("u1", "s1")

    async def test_other_gender_anchor_without_spouse(self, store):
        """A single anchor of gender Other becomes the father slot."""
        await seed(store, make_person("u1", name="Alex", gender="Other"))
        kid = await add_family_member(store, "u1", {"name": "Kid"}, "u1", "Son")
        assert kid.father_id == "u1"
        assert kid.mother_id is None


class TestAddValidation:
    """Tests for add_family_member argument checks."""

    async def test_missing_anchor(self, family_store):
        """An anchor that does not exist aborts with NotFoundError."""
        with pytest.raises(NotFoundError) as excinfo:
            await add_family_member(family_store, "u1", {"name": "X"}, "ghost", "Son")
        assert excinfo.value.record_id == "ghost"

    async def test_unknown_relationship(self, family_store):
        """Only the known relationship labels are accepted."""
        with pytest.raises(InvalidArgumentError):
            await add_family_member(family_store, "u1", {"name": "X"}, "u1", "Cousin")

    async def test_name_required(self, family_store):
        """A blank name is rejected."""
        with pytest.raises(InvalidArgumentError, match="name"):
            await add_family_member(family_store, "u1", {"name": "  "}, "u1", "Son")

    async def test_edge_fields_rejected(self, family_store):
        """Links cannot be smuggled in through the member fields."""
        with pytest.raises(InvalidArgumentError, match="child_ids"):
            await add_family_member(family_store, "u1", {"name": "X", "child_ids": ["c1"]}, "u1", "Son")


class TestUpdateFamilyMember:
    """Tests for field edits and divorce toggles."""

    async def test_plain_fields(self, family_store):
        """Fields change and blank nullable text becomes None."""
        updated = await update_family_member(
            family_store, "u1", "b1", {"name": "Mohan K", "alias_name": "", "sibling_order_index": "1"}
        )
        assert updated.name == "Mohan K"
        assert updated.alias_name is None
        assert updated.sibling_order_index == 1

    async def test_divorce_and_remarry(self, family_store):
        """A divorce toggle moves the link on both records, and back again."""
        await update_family_member(family_store, "u1", "u1", divorce_selections={"s1": True})
        tree = await _tree(family_store)
        assert tree["u1"].spouse_ids == []
        assert tree["u1"].divorced_spouse_ids == ["s1"]
        assert tree["s1"].divorced_spouse_ids == ["u1"]
        assert_symmetric(list(tree.values()))

        await update_family_member(family_store, "u1", "s1", divorce_selections={"u1": False})
        tree = await _tree(family_store)
        assert tree["u1"].spouse_ids == ["s1"]
        assert tree["s1"].divorced_spouse_ids == []

    async def test_unchanged_selection_writes_nothing(self, family_store):
        """Selecting the current state is a no-op."""
        before = (await _tree(family_store))["u1"].updated_at
        await update_family_member(family_store, "u1", "u1", divorce_selections={"s1": False})
        assert (await _tree(family_store))["u1"].updated_at == before

    async def test_non_spouse_selection(self, family_store):
        """Divorce selections must name a current or former spouse."""
        with pytest.raises(InvalidArgumentError):
            await update_family_member(family_store, "u1", "u1", divorce_selections={"b1": True})

    async def test_missing_member(self, family_store):
        """Editing an unknown member raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await update_family_member(family_store, "u1", "ghost", {"name": "X"})

    async def test_unknown_field(self, family_store):
        """Graph edges are not editable as plain fields."""
        with pytest.raises(InvalidArgumentError):
            await update_family_member(family_store, "u1", "b1", {"spouse_ids": []})

    async def test_non_numeric_sibling_order(self, family_store):
        """A sibling order that is not a number is an argument error and writes nothing."""
        with pytest.raises(InvalidArgumentError, match="sibling_order_index"):
            await update_family_member(family_store, "u1", "b1", {"name": "Mohan K", "sibling_order_index": "first"})
        assert (await _tree(family_store))["b1"].name == "Mohan"


class TestSetAnniversaryDate:
    """Tests for per-couple anniversary dates."""

    async def test_set_and_clear(self, family_store):
        """The date is written to both spouses and cleared from both."""
        await set_anniversary_date(family_store, "u1", "u1", "s1", "2010-02-14")
        tree = await _tree(family_store)
        assert tree["u1"].anniversary_dates == {"s1": "2010-02-14"}
        assert tree["s1"].anniversary_dates == {"u1": "2010-02-14"}

        await set_anniversary_date(family_store, "u1", "s1", "u1", "")
        tree = await _tree(family_store)
        assert tree["u1"].anniversary_dates == {}
        assert tree["s1"].anniversary_dates == {}

    async def test_not_spouses(self, family_store):
        """Only spouses can share an anniversary."""
        with pytest.raises(InvalidArgumentError):
            await set_anniversary_date(family_store, "u1", "u1", "b1", "2010-02-14")


class TestDeleteFamilyMember:
    """Tests for delete cascades."""

    @pytest.fixture
    async def delete_store(self, store):
        """d has a father, a spouse, a child, a sibling and a former spouse."""
        return await seed(
            store,
            make_person("u1", name="Owner"),
            make_person("F", name="Father", child_ids=["D", "B"]),
            make_person("D", name="Doomed", gender="Male", father_id="F", spouse_ids=["S"], divorced_spouse_ids=["X"], child_ids=["C"], sibling_ids=["B"]),
            make_person("S", name="Spouse", spouse_ids=["D"], child_ids=["C"], anniversary_dates={"D": "2010-01-01"}),
            make_person("X", name="Ex", divorced_spouse_ids=["D"], anniversary_dates={"D": "2001-05-05"}),
            make_person("C", name="Child", father_id="D", mother_id="S"),
            make_person("B", name="Brother", father_id="F", sibling_ids=["D"]),
        )

    async def test_cascade(self, delete_store):
        """No surviving record points at the deleted person, except a former spouse."""
        await delete_family_member(delete_store, "u1", "D")
        tree = await _tree(delete_store)

        assert "D" not in tree
        assert "D" not in tree["F"].child_ids
        assert "D" not in tree["S"].spouse_ids
        assert tree["S"].anniversary_dates == {}
        assert "D" not in tree["B"].sibling_ids
        assert tree["C"].father_id is None
        assert tree["C"].mother_id == "S"
        assert tree["X"].divorced_spouse_ids == ["D"]
        assert tree["X"].anniversary_dates == {"D": "2001-05-05"}

    async def test_cascade_including_former_spouses(self, delete_store):
        """include_divorced also cleans former spouses."""
        await delete_family_member(delete_store, "u1", "D", include_divorced=True)
        ex = (await _tree(delete_store))["X"]
        assert ex.divorced_spouse_ids == []
        assert ex.anniversary_dates == {}

    async def test_dangling_reference_skipped(self, delete_store):
        """A related id that no longer exists does not block the delete."""
        await delete_store.commit(delete_store.batch().delete("u1", "B"))
        await delete_family_member(delete_store, "u1", "D")
        assert "D" not in await _tree(delete_store)

    async def test_self_profile_rejected(self, family_store):
        """The profile can only go with the whole account."""
        with pytest.raises(InvalidArgumentError):
            await delete_family_member(family_store, "u1", "u1")

    async def test_missing_member(self, family_store):
        """Deleting an unknown member raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await delete_family_member(family_store, "u1", "ghost")


class TestLinkParentToProfile:
    """Tests for linking the profile to an existing parent."""

    async def test_replace_father(self, family_store):
        """The new father takes over the profile and its siblings and marries the mother."""
        await seed(family_store, make_person("nf", name="New Father", gender="Male"))
        profile = await link_parent_to_profile(family_store, "u1", "nf", "Father")
        tree = await _tree(family_store)

        assert profile.father_id == "nf"
        assert "u1" not in tree["f1"].child_ids
        assert set(tree["nf"].child_ids) == {"u1", "b1"}
        assert tree["b1"].father_id == "nf"
        assert "m1" in tree["nf"].spouse_ids
        assert "nf" in tree["m1"].spouse_ids

    async def test_clear_mother(self, family_store):
        """Clearing a parent unlinks the profile from that parent's children."""
        profile = await link_parent_to_profile(family_store, "u1", None, "Mother")
        tree = await _tree(family_store)
        assert profile.mother_id is None
        assert "u1" not in tree["m1"].child_ids
        assert tree["b1"].mother_id == "m1"

    async def test_missing_parent(self, family_store):
        """The chosen parent must exist."""
        with pytest.raises(NotFoundError):
            await link_parent_to_profile(family_store, "u1", "ghost", "Father")

    async def test_bad_parent_type(self, family_store):
        """Only Father and Mother can be linked."""
        with pytest.raises(InvalidArgumentError):
            await link_parent_to_profile(family_store, "u1", "f1", "Uncle")


class TestUpdateUserProfile:
    """Tests for profile creation and updates."""

    async def test_create_defaults_public(self, store):
        """A first save creates a public profile."""
        profile = await update_user_profile(store, "new", {"name": "New User", "email": "n@example.com"})
        assert profile.is_self
        assert profile.is_public is True
        assert profile.email == "n@example.com"

    async def test_update_existing(self, family_store):
        """Blank alias and dates are stored as None; other fields change."""
        profile = await update_user_profile(
            family_store, "u1", {"alias_name": "", "deceased_date": "", "is_public": False}
        )
        assert profile.alias_name is None
        assert profile.is_public is False
        assert profile.name == "Ravi Kumar"


class TestDeleteUserAccount:
    """Tests for whole-account deletion."""

    async def test_removes_tree_references_and_konnections(self, family_store):
        """The tree, cross-tree references and every konnect record go."""
        await seed(
            family_store,
            make_person(
                "u2",
                owner_id="u2",
                name="Other",
                spouse_ids=["u1"],
                divorced_spouse_ids=["s1"],
                anniversary_dates={"u1": "2011-11-11", "z2": "1999-09-09"},
            ),
            make_person("x2", owner_id="u2", name="Linked", father_id="f1", sibling_ids=["b1", "y2"]),
            make_person("u3", owner_id="u3", name="Third", anniversary_dates={"s1": "2005-05-05"}),
        )
        batch = family_store.batch()
        batch.set_konnection("u1", "u2", {"konnected_user_id": "u2", "name": "Other"})
        batch.set_konnection("u2", "u1", {"konnected_user_id": "u1", "name": "Ravi"})
        batch.set_request("u3", "u1", {"sender_id": "u1", "sender_name": "Ravi", "status": "pending"})
        batch.set_request("u1", "u3", {"sender_id": "u3", "sender_name": "Third", "status": "pending"})
        await family_store.commit(batch)

        await delete_user_account(family_store, "u1")

        assert await family_store.get_tree("u1") == []
        assert "u1" not in await family_store.list_user_ids()
        other = await _tree(family_store, "u2")
        assert other["u2"].spouse_ids == []
        assert other["u2"].divorced_spouse_ids == []
        assert other["u2"].anniversary_dates == {"z2": "1999-09-09"}
        assert (await family_store.get_profile("u3")).anniversary_dates == {}
        assert other["x2"].father_id is None
        assert other["x2"].sibling_ids == ["y2"]
        assert await family_store.get_konnections("u2") == []
        assert await family_store.get_konnect_requests("u3") == []
        assert await family_store.find_requests_sent_by("u3") == []

    async def test_unknown_user(self, store):
        """Deleting a user with no records raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await delete_user_account(store, "ghost")
