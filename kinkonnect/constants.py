"""Constants for person records, matching weights and tree layout."""

# Sentinel for a date the user marked as intentionally unknown.
# Distinct from a missing value (None), which means "not yet entered".
UNKNOWN_DATE = "N/A"

# Person kinds
KIND_SELF = "self"
KIND_FAMILY_MEMBER = "family_member"

GENDER_MALE = "Male"
GENDER_FEMALE = "Female"
GENDER_OTHER = "Other"

# Relationship labels accepted when adding a relative to an anchor
REL_FATHER = "Father"
REL_MOTHER = "Mother"
REL_SPOUSE = "Spouse"
REL_BROTHER = "Brother"
REL_SISTER = "Sister"
REL_SON = "Son"
REL_DAUGHTER = "Daughter"

ADD_RELATIONSHIPS = (
    REL_FATHER,
    REL_MOTHER,
    REL_SPOUSE,
    REL_BROTHER,
    REL_SISTER,
    REL_SON,
    REL_DAUGHTER,
)

# Fields a plain edit may touch; graph edges only change through mutations
EDITABLE_FIELDS = frozenset(
    {
        "name",
        "alias_name",
        "dob",
        "gender",
        "is_deceased",
        "deceased_date",
        "anniversary_date",
        "sibling_order_index",
        "native_place",
        "current_place",
        "religion",
        "caste",
        "stories",
        "relationship",
        "is_alternate_profile",
        "is_public",
    }
)

# Empty strings in these fields are stored as null
NULLABLE_TEXT_FIELDS = ("alias_name", "deceased_date", "anniversary_date")

# ============== MATCHING ==============

TREE_SIMILARITY_THRESHOLD = 6.5
MIN_INDIVIDUAL_PAIR_SCORE_THRESHOLD = 6.5

# Score contributed by a first-name edit distance of 0, 1 and 2
FIRST_NAME_WEIGHTS = {0: 2.0, 1: 1.5, 2: 1.0}
FIRST_NAME_REASONS = {
    0: "First Name (Exact)",
    1: "First Name (Very Similar)",
    2: "First Name (Similar)",
}

ALIAS_NAME_WEIGHT = 2.0
DOB_EXACT_WEIGHT = 2.0
DOB_AGE_APPROX_WEIGHT = 1.5
DOB_AGE_APPROX_YEARS = 2
DOB_BOTH_UNKNOWN_WEIGHT = 0.5
NATIVE_PLACE_WEIGHT = 1.5
NATIVE_PLACE_BOTH_UNKNOWN_WEIGHT = 0.5
DECEASED_STATUS_WEIGHT = 1.0
RELIGION_WEIGHT = 1.0
CASTE_WEIGHT = 1.0
CURRENT_PLACE_WEIGHT = 1.0
ROLE_WEIGHT = 0.5

# ============== DISCOVERY ==============

FILTER_NATIVE_PLACE = "nativePlace"
FILTER_RELIGION_AND_CASTE = "religionAndCaste"
FILTER_COMBINED = "combined"

# Profile fields each pre-filter requires the caller to have filled in
FILTER_REQUIRED_FIELDS = {
    FILTER_NATIVE_PLACE: ("native_place",),
    FILTER_RELIGION_AND_CASTE: ("religion", "caste"),
    FILTER_COMBINED: ("native_place", "religion", "caste"),
}

FIELD_LABELS = {
    "native_place": "Native Place",
    "religion": "Religion",
    "caste": "Caste",
}

DEFAULT_SCAN_TIMEOUT_SECONDS = 300.0

# ============== LAYOUT ==============

NODE_WIDTH = 176
NODE_HEIGHT = 140
VERTICAL_GENERATION_GAP = NODE_HEIGHT + 70
MAIN_LINE_HORIZONTAL_GAP = 25
CHILD_INTRA_GROUP_HORIZONTAL_GAP = 20
CHILD_INTER_GROUP_HORIZONTAL_GAP = 35

# Distinguishable co-parent groups; later spouses share the fallback group
MAX_SPOUSE_GROUPS = 20
FALLBACK_SPOUSE_GROUP = MAX_SPOUSE_GROUPS

# Group key for children whose co-parent is not one of the root's ever-spouses
NO_SPOUSE_GROUP = -1

# ============== BADGES ==============

# (name, members required, description, tier), highest first
BADGE_LEVELS = [
    ("Platinum", 3000, "Black Platinum", 6),
    ("Diamond", 2000, "Blue Diamond", 5),
    ("Gold", 1500, "Gold", 4),
    ("Silver", 1000, "Silver", 3),
    ("Bronze", 500, "Bronze", 2),
    ("Steel", 100, "Grey Steel", 1),
]
NO_BADGE = ("None", 0, "New Kin", 0)

# Calendar event ordering within a single day
EVENT_TYPE_ORDER = {"birthday": 1, "anniversary": 2, "death-anniversary": 3}
