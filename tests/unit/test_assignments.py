"""
Tests for the assignments component (page order, assignments, roster).
"""

from uuid import UUID, uuid4

import pytest

from src.components.assignments import (
    GetAssignmentsInput,
    GetRosterInput,
    PageOrderEntry,
    RoleProvider,
    SaveAssignmentsInput,
    UpsertCollaboratorInput,
    run_get_assignments,
    run_get_roster,
    run_save_assignments,
    run_upsert_collaborator,
)
from src.domain.entities import Book, BookFriend, Page, ShapeElement, User
from src.domain.policy import PolicyEngine


class MockBookRepo:
    def __init__(self) -> None:
        self.books: dict[UUID, Book] = {}

    def get_by_id(self, book_id: UUID) -> Book | None:
        return self.books.get(book_id)

    def save(self, book: Book) -> Book:
        stored = book.model_copy(update={"revision": book.revision + 1})
        self.books[book.id] = stored
        return stored


class MockFriendRepo:
    def __init__(self) -> None:
        self.friends: dict[tuple[UUID, UUID], BookFriend] = {}

    def get(self, book_id: UUID, user_id: UUID) -> BookFriend | None:
        return self.friends.get((book_id, user_id))

    def list_by_book(self, book_id: UUID) -> list[BookFriend]:
        return [f for (b, _), f in self.friends.items() if b == book_id]

    def upsert(self, friend: BookFriend) -> BookFriend:
        self.friends[(friend.book_id, friend.user_id)] = friend
        return friend


@pytest.fixture
def owner():
    return User(display_name="Owner")


@pytest.fixture
def author():
    return User(display_name="Author")


@pytest.fixture
def book_repo():
    return MockBookRepo()


@pytest.fixture
def friend_repo():
    return MockFriendRepo()


@pytest.fixture
def policy(rules):
    return PolicyEngine(rules.exports)


@pytest.fixture
def book(book_repo, friend_repo, owner, author):
    pages = [
        Page(page_number=n, elements=[ShapeElement(id=f"s{n}-{i}") for i in range(n)])
        for n in (1, 2, 3)
    ]
    book = Book(name="Album", owner_user_id=owner.id, pages=pages)
    book_repo.books[book.id] = book
    friend_repo.upsert(BookFriend(book_id=book.id, user_id=author.id))
    return book


class TestSaveAssignments:
    def test_reorder_preserves_elements_and_renumbers(
        self, book, book_repo, friend_repo, owner, author, policy
    ):
        p1, p2, p3 = book.pages
        entries = [
            PageOrderEntry(page_id=p3.id, user_id=author.id),
            PageOrderEntry(page_id=p1.id),
            PageOrderEntry(page_id=p2.id),
        ]

        result = run_save_assignments(
            SaveAssignmentsInput(actor=owner, book_id=book.id, entries=entries),
            book_repo=book_repo,
            friend_repo=friend_repo,
            policy=policy,
        )

        assert result.success
        pages = result.book.pages
        assert [p.page_number for p in pages] == [1, 2, 3]
        assert [p.id for p in pages] == [p3.id, p1.id, p2.id]
        assert pages[0].elements == p3.elements
        assert pages[0].assigned_user_id == author.id
        assert pages[1].assigned_user_id is None
        assert book_repo.books[book.id].revision == 1

    def test_author_forbidden(self, book, book_repo, friend_repo, author, policy):
        entries = [PageOrderEntry(page_id=p.id) for p in book.pages]
        result = run_save_assignments(
            SaveAssignmentsInput(actor=author, book_id=book.id, entries=entries),
            book_repo=book_repo,
            friend_repo=friend_repo,
            policy=policy,
        )
        assert result.errors[0].code == "forbidden"
        assert book_repo.books[book.id] is book

    def test_admin_allowed(self, book, book_repo, friend_repo, policy):
        admin = User(display_name="Admin", roles=["admin"])
        entries = [PageOrderEntry(page_id=p.id) for p in book.pages]
        result = run_save_assignments(
            SaveAssignmentsInput(actor=admin, book_id=book.id, entries=entries),
            book_repo=book_repo,
            friend_repo=friend_repo,
            policy=policy,
        )
        assert result.success

    @pytest.mark.parametrize("drop", [True, False])
    def test_entries_must_cover_every_page_once(
        self, book, book_repo, friend_repo, owner, policy, drop
    ):
        ids = [p.id for p in book.pages]
        ids = ids[:-1] if drop else [*ids, ids[0]]
        result = run_save_assignments(
            SaveAssignmentsInput(
                actor=owner, book_id=book.id, entries=[PageOrderEntry(page_id=i) for i in ids]
            ),
            book_repo=book_repo,
            friend_repo=friend_repo,
            policy=policy,
        )
        assert result.errors[0].code == "validation"

    def test_assignee_must_be_collaborator(self, book, book_repo, friend_repo, owner, policy):
        entries = [PageOrderEntry(page_id=p.id, user_id=uuid4()) for p in book.pages]
        result = run_save_assignments(
            SaveAssignmentsInput(actor=owner, book_id=book.id, entries=entries),
            book_repo=book_repo,
            friend_repo=friend_repo,
            policy=policy,
        )
        assert result.errors[0].code == "validation"

    def test_missing_book(self, book_repo, friend_repo, owner, policy):
        result = run_save_assignments(
            SaveAssignmentsInput(actor=owner, book_id=uuid4(), entries=[]),
            book_repo=book_repo,
            friend_repo=friend_repo,
            policy=policy,
        )
        assert result.errors[0].code == "not_found"


class TestQueries:
    def test_get_assignments(self, book, book_repo, friend_repo, author):
        book.pages[1].assigned_user_id = author.id
        result = run_get_assignments(
            GetAssignmentsInput(actor=author, book_id=book.id),
            book_repo=book_repo,
            friend_repo=friend_repo,
        )
        assert result.success
        assert [(a.page_number, a.user_id) for a in result.assignments] == [
            (1, None),
            (2, author.id),
            (3, None),
        ]

    def test_outsider_forbidden(self, book, book_repo, friend_repo):
        result = run_get_roster(
            GetRosterInput(actor=User(display_name="Nobody"), book_id=book.id),
            book_repo=book_repo,
            friend_repo=friend_repo,
        )
        assert result.errors[0].code == "forbidden"

    def test_roster_derives_assigned_pages(self, book, book_repo, friend_repo, owner, author):
        book.pages[2].assigned_user_id = author.id
        result = run_get_roster(
            GetRosterInput(actor=owner, book_id=book.id),
            book_repo=book_repo,
            friend_repo=friend_repo,
        )
        assert [(f.user_id, f.assigned_pages) for f in result.friends] == [(author.id, [3])]


class TestRoleProvider:
    def test_owner_is_implicit(self, book, book_repo, friend_repo, owner):
        role = RoleProvider(book_repo, friend_repo).get_role(book.id, owner.id)
        assert role.book_role == "owner"
        assert role.page_access_level == "all_pages"

    def test_unknown_user(self, book, book_repo, friend_repo):
        assert RoleProvider(book_repo, friend_repo).get_role(book.id, uuid4()) is None

    def test_unknown_book(self, book_repo, friend_repo, owner):
        assert RoleProvider(book_repo, friend_repo).get_role(uuid4(), owner.id) is None


class TestUpsertCollaborator:
    def test_add_and_update(self, book, book_repo, friend_repo, owner, policy):
        new_user = uuid4()
        inp = UpsertCollaboratorInput(
            actor=owner, book_id=book.id, user_id=new_user, page_access_level="all_pages"
        )
        created = run_upsert_collaborator(inp, book_repo, friend_repo, policy)
        assert created.friend.page_access_level == "all_pages"

        inp.book_role = "publisher"
        updated = run_upsert_collaborator(inp, book_repo, friend_repo, policy)
        assert updated.friend.book_role == "publisher"
        assert len([f for f in friend_repo.list_by_book(book.id) if f.user_id == new_user]) == 1

    def test_author_cannot_manage(self, book, book_repo, friend_repo, author, policy):
        inp = UpsertCollaboratorInput(actor=author, book_id=book.id, user_id=uuid4())
        result = run_upsert_collaborator(inp, book_repo, friend_repo, policy)
        assert result.errors[0].code == "forbidden"
