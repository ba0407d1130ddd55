"""Tests for normalization, pair scoring and tree matching."""

from datetime import date

from conftest import make_person

from kinkonnect.matching import match_trees
from kinkonnect.normalize import normalize_person, normalize_tree
from kinkonnect.scoring import name_distance, score_pair


def _years_ago(years: int) -> str:
    today = date.today()
    return date(today.year - years, 1, 1).isoformat()


class TestNormalizePerson:
    """Tests for normalize_person."""

    def test_first_name_lowercased(self):
        """Only the first token of the name is kept, lowercased."""
        result = normalize_person(make_person("p1", name="  Arjun Kumar "))
        assert result.name == "arjun"

    def test_places_drop_whitespace(self):
        """Places are lowercased with all whitespace removed."""
        result = normalize_person(make_person("p1", name="A", native_place=" Chennai, India "))
        assert result.native_place == "chennai,india"

    def test_empty_text_becomes_none(self):
        """Blank fields normalize to None."""
        result = normalize_person(make_person("p1", name="A", religion="   ", alias_name=""))
        assert result.religion is None
        assert result.alias_name is None

    def test_keeps_original_and_relationship(self):
        """The source record and its relationship label are carried along."""
        person = make_person("p1", name="A", relationship="Grand Father")
        result = normalize_person(person)
        assert result.original is person
        assert result.relationship_to_owner == "grand father"

    def test_idempotent(self):
        """Normalizing a normalized person changes nothing."""
        person = make_person(
            "p1",
            name="Arjun K",
            alias_name=" Ajju ",
            native_place="Tamil Nadu",
            current_place="New  York",
            religion="Hindu",
            caste="Iyer",
            relationship="Father",
        )
        once = normalize_person(person)
        assert normalize_person(once) == once

    def test_missing_name_never_raises(self):
        """An unnamed person normalizes to an empty name."""
        assert normalize_person(make_person("p1")).name == ""


class TestScorePair:
    """Tests for score_pair."""

    def test_exact_name_dob_place_scenario(self):
        """Exact name, DOB and native place with both alive scores 6.5."""
        p1 = normalize_person(make_person("a", name="Arjun", dob="1990-05-01", native_place="Chennai, India"))
        p2 = normalize_person(
            make_person("b", owner_id="u2", name="arjun", dob="1990-05-01", native_place="chennai,india")
        )
        score, reasons = score_pair(p1, p2)
        assert score == 6.5
        assert reasons == ["First Name (Exact)", "DOB (Exact)", "Native Place", "Deceased Status"]

    def test_below_threshold_near_match(self):
        """A close name with only matching deceased status stays far below 6.5."""
        p1 = normalize_person(make_person("a", name="Arjun", native_place="Madurai"))
        p2 = normalize_person(make_person("b", name="Arjnn", native_place="Salem"))
        score, reasons = score_pair(p1, p2)
        assert name_distance("arjun", "arjnn") == 1
        assert score == 2.5
        assert reasons == ["First Name (Very Similar)", "Deceased Status"]

    def test_distance_two_is_similar(self):
        """A first-name distance of 2 adds 1.0."""
        p1 = normalize_person(make_person("a", name="Ramesh", native_place="X"))
        p2 = normalize_person(make_person("b", name="Rakesj", native_place="Y"))
        score, reasons = score_pair(p1, p2)
        assert reasons == ["First Name (Similar)", "Deceased Status"]
        assert score == 2.0

    def test_age_within_two_years(self):
        """Different DOBs within two years of age add the approximate bonus."""
        p1 = normalize_person(make_person("a", name="X", dob=_years_ago(40)))
        p2 = normalize_person(make_person("b", name="Y", dob=_years_ago(41)))
        _, reasons = score_pair(p1, p2)
        assert "DOB (Age Approx. ±2yrs)" in reasons

    def test_both_unknown_dob_and_place(self):
        """Both 'N/A' DOBs and both missing native places add the small bonuses."""
        p1 = normalize_person(make_person("a", name="Sita", dob="N/A"))
        p2 = normalize_person(make_person("b", name="Sita", dob="N/A"))
        score, reasons = score_pair(p1, p2)
        assert "DOB (N/A for both)" in reasons
        assert "Native Place (Unknown for both)" in reasons
        assert score == 2.0 + 0.5 + 0.5 + 1.0

    def test_one_unknown_dob_adds_nothing(self):
        """'N/A' against a real date is no signal."""
        p1 = normalize_person(make_person("a", name="Sita", dob="N/A", native_place="x"))
        p2 = normalize_person(make_person("b", name="Sita", dob="1970-01-01", native_place="y"))
        assert score_pair(p1, p2)[1] == ["First Name (Exact)", "Deceased Status"]

    def test_secondary_signals(self):
        """Alias, religion, caste, current place and role each add their weight."""
        fields = {
            "name": "Meena",
            "alias_name": "Meenu",
            "religion": "Hindu",
            "caste": "Iyer",
            "current_place": "Pune",
            "native_place": "Trichy",
            "relationship": "Mother",
        }
        score, reasons = score_pair(
            normalize_person(make_person("a", **fields)), normalize_person(make_person("b", **fields))
        )
        assert score == 2.0 + 2.0 + 1.5 + 1.0 + 1.0 + 1.0 + 1.0 + 0.5
        assert reasons[-1] == "Role (Same to their tree owner)"

    def test_symmetric(self):
        """Swapping the arguments gives the same score and reasons."""
        p1 = normalize_person(make_person("a", name="Kavya", dob="1992-04-04", religion="Hindu", is_deceased=True))
        p2 = normalize_person(make_person("b", name="Kavia", dob="1991-12-30", religion="hindu"))
        assert score_pair(p1, p2) == score_pair(p2, p1)


class TestMatchTrees:
    """Tests for match_trees."""

    def _arjun(self, person_id, owner_id):
        return make_person(person_id, owner_id=owner_id, name="Arjun", dob="1990-05-01", native_place="Chennai")

    def test_single_strong_pair_is_similar(self):
        """One pair at the threshold makes the trees similar."""
        result = match_trees(normalize_tree([self._arjun("a", "u1")]), normalize_tree([self._arjun("b", "u2")]))
        assert result.is_similar is True
        assert result.score == 6.5
        assert [(p.person1.id, p.person2.id) for p in result.contributing_pairs] == [("a", "b")]

    def test_weak_pair_not_counted(self):
        """A best pair below the threshold is not committed."""
        mine = normalize_tree([make_person("a", name="Arjun", native_place="x")])
        theirs = normalize_tree([make_person("b", name="Arjnn", native_place="y")])
        result = match_trees(mine, theirs)
        assert result.is_similar is False
        assert result.contributing_pairs == []
        assert result.score == 0.0

    def test_partner_claimed_once(self):
        """A matched partner cannot be matched again."""
        mine = normalize_tree([self._arjun("a1", "u1"), self._arjun("a2", "u1")])
        theirs = normalize_tree([self._arjun("b1", "u2")])
        result = match_trees(mine, theirs)
        assert len(result.contributing_pairs) == 1
        assert result.contributing_pairs[0].person1.id == "a1"

    def test_ties_keep_first_candidate(self):
        """Equal scores keep the earlier candidate."""
        mine = normalize_tree([self._arjun("a", "u1")])
        theirs = normalize_tree([self._arjun("b1", "u2"), self._arjun("b2", "u2")])
        assert match_trees(mine, theirs).contributing_pairs[0].person2.id == "b1"

    def test_alternate_profiles_and_unnamed_skipped(self):
        """Alternate profiles and unnamed people never match."""
        alternate = self._arjun("a", "u1")
        alternate.is_alternate_profile = True
        unnamed = make_person("n", name="", dob="1990-05-01", native_place="Chennai")
        result = match_trees(normalize_tree([alternate, unnamed]), normalize_tree([self._arjun("b", "u2")]))
        assert result.is_similar is False

    def test_empty_tree(self):
        """An empty side yields no similarity."""
        assert match_trees([], normalize_tree([self._arjun("b", "u2")])).is_similar is False

    def test_deterministic(self):
        """Repeated runs give identical pairs and scores."""
        mine = normalize_tree([self._arjun("a1", "u1"), make_person("a2", name="Sita", dob="N/A")])
        theirs = normalize_tree([make_person("b2", name="Sita", dob="N/A"), self._arjun("b1", "u2")])
        first = match_trees(mine, theirs)
        second = match_trees(mine, theirs)
        assert first.score == second.score
        assert [(p.person1.id, p.person2.id) for p in first.contributing_pairs] == [
            (p.person1.id, p.person2.id) for p in second.contributing_pairs
        ]
