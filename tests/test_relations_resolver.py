"""
Tests for relationship resolution and the per-instance cache.

Uses in-memory SQLite with the forum models.
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from ligature.faults import ModelNotFoundFault, RelationshipNotFoundFault
from ligature.models import CharField, GlobalHandle, IntegerField, Model, ModelRegistry

from tests.forum import Comment, Group, Media, Page, Photo, Post, Thread, User, UserGroup


# ── Helpers ──────────────────────────────────────────────────────────────────


async def make_memberships():
    ann = await User.create(Username="ann")
    bob = await User.create(Username="bob")
    admins = await Group.create(Name="admins")
    editors = await Group.create(Name="editors")
    readers = await Group.create(Name="readers")
    await UserGroup.create(UserID=ann.ID, GroupID=readers.ID)
    await UserGroup.create(UserID=ann.ID, GroupID=admins.ID)
    await UserGroup.create(UserID=bob.ID, GroupID=editors.ID)
    return ann, bob


class TestOneToOne:
    @pytest.mark.asyncio
    async def test_resolves_by_foreign_key(self, db):
        await Thread.create(ID=5, Title="Five")
        post = await Post.create(ThreadID=5, Title="Hello")

        with patch.object(Thread, "get_by_field", new=AsyncMock(wraps=Thread.get_by_field)) as spy:
            thread = await post.related("Thread")

        spy.assert_awaited_once_with("ID", 5)
        assert isinstance(thread, Thread)
        assert thread.ID == 5
        assert post.is_related_loaded("Thread")

    @pytest.mark.asyncio
    async def test_second_access_is_cache_hit(self, db):
        await Thread.create(ID=5, Title="Five")
        post = await Post.create(ThreadID=5, Title="Hello")

        with patch.object(Thread, "get_by_field", new=AsyncMock(wraps=Thread.get_by_field)) as spy:
            first = await post.related("ThreadExplicit")
            second = await post.related("ThreadExplicit")

        assert spy.await_count == 1
        assert first is second

    @pytest.mark.asyncio
    async def test_unset_local_key_is_absent(self, db):
        post = await Post.create(Title="Orphan")

        with patch.object(Thread, "get_by_field", new=AsyncMock()) as spy:
            assert await post.related("Thread") is None

        spy.assert_not_awaited()
        assert post.is_related_loaded("Thread")

    @pytest.mark.asyncio
    async def test_missing_target_is_absent(self, db):
        post = await Post.create(ThreadID=999, Title="Dangling")
        assert await post.related("Thread") is None

    @pytest.mark.asyncio
    async def test_dependency_write_invalidates(self, db):
        first = await Thread.create(Title="First")
        second = await Thread.create(Title="Second")
        post = await Post.create(ThreadID=first.ID, Title="Moving")

        assert (await post.related("Thread")).ID == first.ID
        post.ThreadID = second.ID
        assert not post.is_related_loaded("Thread")
        assert (await post.related("Thread")).ID == second.ID

    @pytest.mark.asyncio
    async def test_key_write_after_assignment_invalidates(self, db):
        class Forum(Model):
            table = "forums"

            Name = CharField(max_length=50)

        class Topic(Model):
            table = "topics"

            ForumID = IntegerField(null=True)

            relationships = {
                "Forum": "Forum",
            }

        await ModelRegistry.create_tables(db)
        first = await Forum.create(Name="first")
        second = await Forum.create(Name="second")

        topic = Topic()
        topic.set_related("Forum", first)
        topic.ForumID = second.ID

        assert not topic.is_related_loaded("Forum")
        assert (await topic.related("Forum")).Name == "second"

    @pytest.mark.asyncio
    async def test_same_value_write_keeps_cache(self, db):
        thread = await Thread.create(Title="Same")
        post = await Post.create(ThreadID=thread.ID, Title="Stay")

        await post.related("Thread")
        post.ThreadID = thread.ID
        assert post.is_related_loaded("Thread")

    @pytest.mark.asyncio
    async def test_unrelated_field_write_keeps_cache(self, db):
        thread = await Thread.create(Title="Same")
        post = await Post.create(ThreadID=thread.ID, Title="Stay")

        await post.related("Thread")
        post.Title = "Renamed"
        assert post.is_related_loaded("Thread")


class TestOneToMany:
    @pytest.mark.asyncio
    async def test_resolves_ordered_collection(self, db):
        await Thread.create(ID=5, Title="Five")
        other = await Thread.create(Title="Other")
        await Post.create(ThreadID=5, Title="a")
        await Post.create(ThreadID=other.ID, Title="x")
        await Post.create(ThreadID=5, Title="b")
        thread = await Thread.get_by_id(5)

        with patch.object(Post, "get_all_by_where", new=AsyncMock(wraps=Post.get_all_by_where)) as spy:
            posts = await thread.related("Posts")
            again = await thread.related("Posts")

        spy.assert_awaited_once_with(
            [("ThreadID", 5)], order=(("ID", "ASC"),), index_field=None,
        )
        assert [p.Title for p in posts] == ["a", "b"]
        assert again is posts

    @pytest.mark.asyncio
    async def test_index_field_keys_results(self, db):
        thread = await Thread.create(Title="Indexed")
        await Post.create(ThreadID=thread.ID, Title="intro")
        await Post.create(ThreadID=thread.ID, Title="dup")
        last_dup = await Post.create(ThreadID=thread.ID, Title="dup")

        posts = await thread.related("PostsByTitle")

        assert isinstance(posts, dict)
        assert set(posts) == {"intro", "dup"}
        assert posts["dup"].ID == last_dup.ID

    @pytest.mark.asyncio
    async def test_missing_index_field_falls_back_to_list(self, db, caplog):
        class Board(Model):
            Name = CharField(max_length=50)

            relationships = {
                "Posts": {
                    "kind": "one-many",
                    "target": "Post",
                    "foreign": "ThreadID",
                    "index_field": "Nope",
                },
            }

        await Post.create(ThreadID=7, Title="on board")
        board = Board(ID=7, Name="b")

        with caplog.at_level(logging.WARNING, logger="ligature.relations.resolver"):
            posts = await board.related("Posts")

        assert isinstance(posts, list)
        assert [p.Title for p in posts] == ["on board"]
        assert "Nope" in caplog.text

    @pytest.mark.asyncio
    async def test_phantom_owner_has_empty_collection(self, db):
        thread = Thread(Title="New")
        with patch.object(Post, "get_all_by_where", new=AsyncMock()) as spy:
            assert await thread.related("Posts") == []
            assert await thread.related("PostsByTitle") == {}
        spy.assert_not_awaited()


class TestManyToMany:
    @pytest.mark.asyncio
    async def test_resolves_through_link(self, db):
        ann, bob = await make_memberships()

        with patch.object(Group, "get_all_by_query", new=AsyncMock(wraps=Group.get_all_by_query)) as spy:
            groups = await ann.related("Groups")

        assert spy.await_count == 1
        sql, params = spy.await_args.args
        assert '"user_groups" Link' in sql
        assert 'Link."UserID" = ?' in sql
        assert params == [ann.ID]
        assert [g.Name for g in groups] == ["admins", "readers"]
        assert [g.Name for g in await bob.related("Groups")] == ["editors"]

    @pytest.mark.asyncio
    async def test_index_field_applies(self, db):
        ann, _ = await make_memberships()
        groups = await ann.related("GroupsByName")
        assert isinstance(groups, dict)
        assert set(groups) == {"admins", "readers"}

    @pytest.mark.asyncio
    async def test_conditions_apply_to_target(self, db):
        class Member(Model):
            table = "users"

            Username = CharField(max_length=100)

            relationships = {
                "Admin": {
                    "kind": "many-many",
                    "target": "Group",
                    "link": "UserGroup",
                    "link_local": "UserID",
                    "conditions": {"Name": "admins"},
                },
            }

        ann, _ = await make_memberships()
        member = await Member.get_by_id(ann.ID)
        assert [g.Name for g in await member.related("Admin")] == ["admins"]


class TestContextRelationships:
    @pytest.mark.asyncio
    async def test_context_children(self, db):
        thread = await Thread.create(Title="Commented")
        post = await Post.create(ID=thread.ID, Title="Same id, other class")
        await Comment.create(ContextClass="Thread", ContextID=thread.ID, Body="one")
        await Comment.create(ContextClass="Post", ContextID=post.ID, Body="elsewhere")
        await Comment.create(ContextClass="Thread", ContextID=thread.ID, Body="two")

        comments = await thread.related("Comments")
        assert [c.Body for c in comments] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_context_child_is_newest(self, db):
        thread = await Thread.create(Title="Commented")
        await Comment.create(ContextClass="Thread", ContextID=thread.ID, Body="old")
        await Comment.create(ContextClass="Thread", ContextID=thread.ID, Body="new")

        latest = await thread.related("LatestComment")
        assert latest.Body == "new"

    @pytest.mark.asyncio
    async def test_context_child_absent(self, db):
        thread = await Thread.create(Title="Quiet")
        assert await thread.related("LatestComment") is None

    @pytest.mark.asyncio
    async def test_context_parent(self, db):
        thread = await Thread.create(Title="Parent")
        comment = await Comment.create(ContextClass="Thread", ContextID=thread.ID, Body="hi")

        parent = await comment.related("Context")
        assert isinstance(parent, Thread)
        assert parent.ID == thread.ID

    @pytest.mark.asyncio
    async def test_context_parent_unset(self, db):
        comment = await Comment.create(Body="floating")
        assert await comment.related("Context") is None

    @pytest.mark.asyncio
    async def test_context_parent_unknown_class(self, db):
        comment = await Comment.create(ContextClass="Nowhere", ContextID=1, Body="lost")
        with pytest.raises(ModelNotFoundFault):
            await comment.related("Context")

    @pytest.mark.asyncio
    async def test_context_parent_invalidated_by_class_field(self, db):
        thread = await Thread.create(Title="T")
        post = await Post.create(Title="P")
        comment = await Comment.create(ContextClass="Thread", ContextID=thread.ID, Body="x")

        await comment.related("Context")
        comment.ContextClass = "Post"
        assert not comment.is_related_loaded("Context")
        comment.ContextID = post.ID
        assert isinstance(await comment.related("Context"), Post)

    @pytest.mark.asyncio
    async def test_context_parent_of_subclass_record(self, db):
        await Media.create(Caption="media-row")
        photo = await Photo.create(Caption="photo-row")
        comment = Comment(Body="nice shot")
        comment.set_related("Context", photo)
        await comment.save()

        stored = await Comment.get_by_id(comment.ID)
        parent = await stored.related("Context")

        assert stored.ContextClass == "Media"
        assert isinstance(parent, Photo)
        assert parent.Caption == "photo-row"

    @pytest.mark.asyncio
    async def test_context_children_of_sibling_records_stay_apart(self, db):
        media = await Media.create(Caption="media-row")
        photo = await Photo.create(Caption="photo-row")
        await Comment.create(ContextClass="Media", ContextID=media.ID, Body="on media")

        assert await photo.related("Comments") == []
        assert [c.Body for c in await media.related("Comments")] == ["on media"]


class TestHandleAndHistory:
    @pytest.mark.asyncio
    async def test_handle(self, db):
        handle = await GlobalHandle.create(Handle="ann")
        user = await User.create(Username="ann", Handle="ann")

        resolved = await user.related("GlobalHandle")
        assert resolved.ID == handle.ID

    @pytest.mark.asyncio
    async def test_handle_unset(self, db):
        user = await User.create(Username="nobody")
        assert await user.related("GlobalHandle") is None

    @pytest.mark.asyncio
    async def test_history_newest_first(self, db):
        page = await Page.create(Title="v1")
        page.Title = "v2"
        await page.save()

        revisions = await page.related("History")
        assert [r.Title for r in revisions] == ["v2", "v1"]
        assert revisions[0].revision_id > revisions[1].revision_id

    @pytest.mark.asyncio
    async def test_history_of_phantom(self, db):
        assert await Page(Title="draft").related("History") == []


class TestCacheControl:
    @pytest.mark.asyncio
    async def test_unknown_relationship(self, db):
        post = await Post.create(Title="p")
        with pytest.raises(RelationshipNotFoundFault):
            await post.related("Author")

    @pytest.mark.asyncio
    async def test_invalidate_one(self, db):
        thread = await Thread.create(Title="t")
        post = await Post.create(ThreadID=thread.ID, Title="p")
        await post.related("Thread")
        await post.related("ThreadExplicit")

        post.invalidate_related("Thread")
        assert not post.is_related_loaded("Thread")
        assert post.is_related_loaded("ThreadExplicit")

    @pytest.mark.asyncio
    async def test_invalidate_all(self, db):
        thread = await Thread.create(Title="t")
        post = await Post.create(ThreadID=thread.ID, Title="p")
        await post.related("Thread")
        await post.related("ThreadExplicit")

        post.invalidate_related()
        assert not post.is_related_loaded("Thread")
        assert not post.is_related_loaded("ThreadExplicit")
