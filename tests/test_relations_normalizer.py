"""
Tests for relationship normalization.

Covers:
- Kind defaults (keys, context class, order, targets)
- Determinism of normalize()
- Declaration checks (unknown kind/option, missing required options)
- Condition and order parsing
"""

import pytest

from ligature.faults import RelationshipConfigFault, Severity
from ligature.models import GlobalHandle
from ligature.relations import (
    ContextChild,
    ContextChildren,
    ContextParent,
    Handle,
    History,
    ManyToMany,
    OneToMany,
    OneToOne,
    RelationshipKind,
    check_declaration,
    normalize,
    parse_kind,
)

from tests.forum import (
    Comment,
    Group,
    Page,
    Photo,
    Post,
    Thread,
    User,
    UserGroup,
)


class TestDefaults:
    def test_bare_target_is_one_to_one(self):
        d = normalize(Post, "Thread", "Thread")
        assert d == OneToOne(name="Thread", target=Thread, local_key="ThreadID", foreign_key="ID")
        assert d.kind is RelationshipKind.ONE_TO_ONE

    def test_class_target_is_one_to_one(self):
        d = normalize(Post, "Owner", Thread)
        assert isinstance(d, OneToOne)
        assert d.local_key == "OwnerID"

    def test_explicit_one_to_one(self):
        d = normalize(Post, "ThreadExplicit", {
            "kind": "one-one", "target": "Thread", "local": "ThreadID", "foreign": "ID",
        })
        assert d == OneToOne(
            name="ThreadExplicit", target=Thread, local_key="ThreadID", foreign_key="ID",
        )

    def test_one_to_many(self):
        d = normalize(Thread, "Posts", {"kind": "one-many", "target": "Post"})
        assert isinstance(d, OneToMany)
        assert d.local_key == "ID"
        assert d.foreign_key == "ThreadID"
        assert d.conditions == ()
        assert d.order == ()
        assert d.index_field is None

    def test_one_to_many_foreign_uses_root_class(self):
        d = normalize(Photo, "Notes", {"kind": "one-many", "target": "Comment"})
        assert d.foreign_key == "MediaID"

    def test_many_to_many(self):
        d = normalize(User, "Groups", {"kind": "many-many", "target": "Group", "link": "UserGroup"})
        assert d == ManyToMany(
            name="Groups",
            target=Group,
            link=UserGroup,
            local_key="ID",
            foreign_key="ID",
            link_local_key="UserID",
            link_foreign_key="GroupID",
        )

    def test_context_children(self):
        d = normalize(Thread, "Comments", {"kind": "context-children", "target": "Comment"})
        assert isinstance(d, ContextChildren)
        assert d.context_class == "Thread"
        assert d.local_key == "ID"
        assert d.order == ()

    def test_context_class_is_root_name(self):
        d = normalize(Photo, "Comments", {"kind": "context-children", "target": "Comment"})
        assert d.context_class == "Media"

    def test_context_child_orders_newest_first(self):
        d = normalize(Thread, "LatestComment", {"kind": "context-child", "target": "Comment"})
        assert isinstance(d, ContextChild)
        assert d.order == (("ID", "DESC"),)

    def test_context_parent(self):
        d = normalize(Comment, "Context", {"kind": "context-parent"})
        assert d == ContextParent(
            name="Context",
            local_key="ContextID",
            foreign_key="ID",
            class_field="ContextClass",
            allowed_classes=frozenset({"Thread", "Post", "Media"}),
        )
        assert d.depends_on == ("ContextClass", "ContextID")

    def test_context_parent_explicit_allowed_classes(self):
        d = normalize(Comment, "Context", {"kind": "context-parent", "allowed_classes": [Photo]})
        assert d.allowed_classes == frozenset({"Media"})

    def test_handle(self):
        d = normalize(User, "GlobalHandle", {"kind": "handle"})
        assert d == Handle(name="GlobalHandle", target=GlobalHandle, local_key="Handle")

    def test_history(self):
        d = normalize(Page, "History", {"kind": "history"})
        assert d == History(name="History", target=Page, order=(("RevisionID", "DESC"),))
        assert d.depends_on == ()

    def test_type_alias(self):
        d = normalize(Thread, "Posts", {"type": "one-many", "target": "Post"})
        assert isinstance(d, OneToMany)

    def test_enum_kind(self):
        d = normalize(User, "GlobalHandle", {"kind": RelationshipKind.HANDLE})
        assert isinstance(d, Handle)


class TestDeterminism:
    @pytest.mark.parametrize("owner,name,raw", [
        (Post, "Thread", "Thread"),
        (Thread, "Posts", {"kind": "one-many", "target": "Post", "order": "-ID"}),
        (User, "Groups", {"kind": "many-many", "target": "Group", "link": "UserGroup",
                          "conditions": {"Name": "admins"}}),
        (Thread, "Comments", {"kind": "context-children", "target": "Comment"}),
        (Thread, "LatestComment", {"kind": "context-child", "target": "Comment"}),
        (Comment, "Context", {"kind": "context-parent"}),
        (User, "GlobalHandle", {"kind": "handle"}),
        (Page, "History", {"kind": "history"}),
    ])
    def test_normalize_twice_is_equal(self, owner, name, raw):
        assert normalize(owner, name, raw) == normalize(owner, name, raw)


class TestDeclarationChecks:
    def test_many_to_many_requires_link(self):
        with pytest.raises(RelationshipConfigFault) as exc_info:
            check_declaration(User, "Groups", {"kind": "many-many", "target": "Group"})
        assert "link" in str(exc_info.value)

    def test_many_to_many_requires_target(self):
        with pytest.raises(RelationshipConfigFault):
            check_declaration(User, "Groups", {"kind": "many-many", "link": "UserGroup"})

    def test_unknown_kind(self):
        with pytest.raises(RelationshipConfigFault) as exc_info:
            check_declaration(Post, "Thread", {"kind": "many-one", "target": "Thread"})
        fault = exc_info.value
        assert fault.code == "RELATIONSHIP_CONFIG_INVALID"
        assert fault.severity == Severity.FATAL
        assert fault.retryable is False

    def test_unknown_option(self):
        with pytest.raises(RelationshipConfigFault) as exc_info:
            check_declaration(Post, "Thread", {"target": "Thread", "linkClass": "X"})
        assert "linkClass" in str(exc_info.value)

    def test_option_not_used_by_kind(self):
        with pytest.raises(RelationshipConfigFault):
            check_declaration(Post, "Thread", {"kind": "one-one", "target": "Thread", "order": "ID"})

    def test_kind_and_type_together(self):
        with pytest.raises(RelationshipConfigFault):
            check_declaration(Thread, "Posts", {"kind": "one-many", "type": "one-many", "target": "Post"})

    def test_declaration_must_be_mapping_or_target(self):
        with pytest.raises(RelationshipConfigFault):
            check_declaration(Post, "Thread", 42)

    def test_history_on_unversioned_model(self):
        with pytest.raises(RelationshipConfigFault):
            check_declaration(Thread, "History", {"kind": "history"})

    def test_unregistered_target_fails_on_normalize_only(self):
        raw = {"kind": "one-one", "target": "NoSuchModel"}
        check_declaration(Post, "Ghost", raw)
        with pytest.raises(RelationshipConfigFault) as exc_info:
            normalize(Post, "Ghost", raw)
        assert "NoSuchModel" in str(exc_info.value)

    def test_history_target_must_be_versioned(self):
        with pytest.raises(RelationshipConfigFault):
            normalize(Page, "Threads", {"kind": "history", "target": "Thread"})


class TestConditionsAndOrder:
    def test_mapping_conditions(self):
        d = normalize(Thread, "Open", {
            "kind": "one-many", "target": "Post", "conditions": {"Title": "open"},
        })
        assert d.conditions == (("Title", "open"),)

    def test_string_condition(self):
        d = normalize(Thread, "Open", {
            "kind": "one-many", "target": "Post", "conditions": "Title LIKE 'a%'",
        })
        assert d.conditions == ("Title LIKE 'a%'",)

    def test_mixed_conditions(self):
        d = normalize(Thread, "Open", {
            "kind": "one-many",
            "target": "Post",
            "conditions": ["ID > 3", ("Title", "x"), {"ThreadID": None}],
        })
        assert d.conditions == ("ID > 3", ("Title", "x"), ("ThreadID", None))

    def test_invalid_condition(self):
        with pytest.raises(RelationshipConfigFault):
            check_declaration(Thread, "Open", {"kind": "one-many", "target": "Post", "conditions": [3]})

    @pytest.mark.parametrize("raw,expected", [
        ("Title", (("Title", "ASC"),)),
        ("-ID", (("ID", "DESC"),)),
        ("Title desc", (("Title", "DESC"),)),
        (["-ID", "Title"], (("ID", "DESC"), ("Title", "ASC"))),
        ([("Title", "asc")], (("Title", "ASC"),)),
        ({"ID": "DESC"}, (("ID", "DESC"),)),
    ])
    def test_order_forms(self, raw, expected):
        d = normalize(Thread, "Sorted", {"kind": "one-many", "target": "Post", "order": raw})
        assert d.order == expected

    def test_invalid_order_direction(self):
        with pytest.raises(RelationshipConfigFault):
            check_declaration(Thread, "Sorted", {"kind": "one-many", "target": "Post", "order": "ID SIDEWAYS"})


class TestParseKind:
    @pytest.mark.parametrize("raw,expected", [
        ("one-one", RelationshipKind.ONE_TO_ONE),
        ("one-to-many", RelationshipKind.ONE_TO_MANY),
        ("MANY_MANY", RelationshipKind.MANY_TO_MANY),
        ("context-children", RelationshipKind.CONTEXT_CHILDREN),
        (RelationshipKind.HISTORY, RelationshipKind.HISTORY),
    ])
    def test_known(self, raw, expected):
        assert parse_kind(raw) is expected

    def test_unknown(self):
        assert parse_kind("sideways") is None
        assert parse_kind(7) is None
