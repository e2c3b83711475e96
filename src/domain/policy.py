from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from src.domain.entities import (
    BookFriend,
    BookRole,
    EditorInteractionLevel,
    ExportQuality,
    PageAccessLevel,
)
from src.rules.models import ExportRules

Redirect = Literal["form"]

_FULL_EDIT = ("full_edit", "full_edit_with_settings")


@dataclass(frozen=True)
class EditorCapabilities:
    """
    What a collaborator may see and do in the editor for one navigation.

    Computed once per page navigation (or role change) and cached by the
    document store.
    """

    can_access_editor: bool
    can_edit_canvas: bool
    can_manage_pages: bool
    can_view_settings: bool
    visible_pages: tuple[int, ...]
    editable_pages: frozenset[int] = field(default_factory=frozenset)
    active_page_number: int | None = None
    forced_page_change: bool = False
    redirect: Redirect | None = None

    def can_view(self, page_number: int) -> bool:
        return page_number in self.visible_pages

    def can_edit(self, page_number: int) -> bool:
        return page_number in self.editable_pages


NO_ACCESS = EditorCapabilities(
    can_access_editor=False,
    can_edit_canvas=False,
    can_manage_pages=False,
    can_view_settings=False,
    visible_pages=(),
)


def _form_redirect() -> EditorCapabilities:
    return EditorCapabilities(
        can_access_editor=False,
        can_edit_canvas=False,
        can_manage_pages=False,
        can_view_settings=False,
        visible_pages=(),
        redirect="form",
    )


def resolve_capabilities(
    book_role: BookRole | None,
    editor_interaction_level: EditorInteractionLevel | None,
    page_access_level: PageAccessLevel | None,
    assigned_pages: Sequence[int],
    current_page_number: int | None,
    page_numbers: Sequence[int],
) -> EditorCapabilities:
    """
    Compute editor capabilities from a collaborator's role data.

    Pure function. Rules:
    - owner/publisher see and edit every page and manage page structure
    - authors blocked by interaction or page access level go to the form view
    - own_page authors only ever see their assigned pages
    - all_pages authors see everything but edit only assigned pages
    - answer_only authors see every page, even with own_page access, and edit
      nothing on the canvas
    If the current page is not visible the first visible page is selected and
    forced_page_change is set.
    """
    all_pages = tuple(sorted(page_numbers))

    if book_role in ("owner", "publisher"):
        visible = all_pages
        editable = frozenset(all_pages)
        manage = True
        settings = True
    elif book_role == "author":
        if (
            editor_interaction_level in ("no_access", "form_only")
            or page_access_level == "form_only"
        ):
            return _form_redirect()

        assigned = frozenset(p for p in assigned_pages if p in all_pages)
        if editor_interaction_level == "answer_only":
            # Page access level does not narrow an answer_only view
            visible = all_pages
        elif page_access_level == "own_page":
            if not assigned:
                return _form_redirect()
            visible = tuple(p for p in all_pages if p in assigned)
        else:
            visible = all_pages

        editable = assigned if editor_interaction_level in _FULL_EDIT else frozenset()
        manage = False
        settings = editor_interaction_level == "full_edit_with_settings"
    else:
        return NO_ACCESS

    active = current_page_number
    forced = False
    if active not in visible:
        active = visible[0] if visible else None
        forced = current_page_number is not None or active is not None

    return EditorCapabilities(
        can_access_editor=True,
        can_edit_canvas=active is not None and active in editable,
        can_manage_pages=manage,
        can_view_settings=settings,
        visible_pages=visible,
        editable_pages=editable,
        active_page_number=active,
        forced_page_change=forced,
    )


def resolve_for_friend(
    friend: BookFriend | None,
    current_page_number: int | None,
    page_numbers: Sequence[int],
) -> EditorCapabilities:
    if friend is None:
        return NO_ACCESS
    return resolve_capabilities(
        friend.book_role,
        friend.editor_interaction_level,
        friend.page_access_level,
        friend.assigned_pages,
        current_page_number,
        page_numbers,
    )


class PolicyEngine:
    """Rules-driven export policy (quality tiers per role)."""

    def __init__(self, rules: ExportRules):
        self.rules = rules

    def can_export_quality(
        self,
        book_role: BookRole | None,
        is_admin: bool,
        quality: ExportQuality,
    ) -> bool:
        if is_admin:
            return True
        if quality in self.rules.admin_only_qualities:
            return False
        allowed = self.rules.quality_roles.get(quality, [])
        return book_role is not None and book_role in allowed

    def dpi_for(self, quality: ExportQuality) -> int:
        return self.rules.quality_dpi.get(quality, 150)

    def can_manage_book(self, book_role: BookRole | None, is_admin: bool = False) -> bool:
        return is_admin or book_role in ("owner", "publisher")
