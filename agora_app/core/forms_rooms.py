from __future__ import annotations

import datetime
from collections.abc import Sequence

from django import forms

from core.forms_base import AdminPasswordForm, StyledForm, StyledModelForm
from core.models import Panel, Position, Room, Term
from core.roles import (
    ALL_ELECTION_ROLES,
    CLUB_AUTHORITIES,
    CLUB_OPERATION_TEAM,
    FACULTY_ROLES,
    GENERAL_CLUB_ROLES,
    OTHER_ROLE,
    can_skip_reviews,
    is_own_position,
)
from core.rooms_conflicts import MultiWin, Tie
from core.rooms_services import CandidateSpec, PositionSpec, ReviewSelection

POSITIONS_HELP_TEXT = (
    "One position per line, followed by its candidates on lines starting with '-'. "
    "Add an image URL after a '|', e.g. '- Alice | https://example.org/alice.png'."
)


def parse_positions_text(text: str) -> tuple[PositionSpec, ...]:
    """Parse the positions textarea into position specs.

    Example::

        President
        - Alice
        - Bob | https://example.org/bob.png
        Secretary
        - Carol
    """
    parsed: list[tuple[str, list[CandidateSpec]]] = []
    for line_number, raw_line in enumerate(str(text or "").splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("-"):
            if not parsed:
                raise forms.ValidationError(f"Line {line_number}: a candidate must follow a position title.")
            name, _sep, image_url = line[1:].partition("|")
            parsed[-1][1].append(CandidateSpec(name=name.strip(), image_url=image_url.strip()))
        else:
            parsed.append((line, []))

    return tuple(PositionSpec(title=title, candidates=tuple(candidates)) for title, candidates in parsed)


def format_positions_text(room: Room) -> str:
    lines: list[str] = []
    for position in room.positions.prefetch_related("candidates").all():
        lines.append(position.title)
        for candidate in position.candidates.all():
            suffix = f" | {candidate.image_url}" if candidate.image_url else ""
            lines.append(f"- {candidate.name}{suffix}")
    return "\n".join(lines)


class RoomForm(StyledModelForm):
    positions_text = forms.CharField(
        label="Positions and candidates",
        widget=forms.Textarea(attrs={"rows": 10}),
        help_text=POSITIONS_HELP_TEXT,
    )

    class Meta:
        model = Room
        fields = ["title", "description", "room_type", "panel", "is_access_restricted", "access_code"]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 3}),
        }

    def __init__(self, *args, positions_editable: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["panel"].queryset = Panel.objects.all()
        self.fields["panel"].required = False
        if self.instance.pk:
            # The room type is fixed once positions exist.
            self.fields.pop("room_type")
            self.fields["positions_text"].initial = format_positions_text(self.instance)
        if not positions_editable:
            self.fields["positions_text"].required = False
            self.fields["positions_text"].disabled = True
            self.fields["positions_text"].help_text = "Positions can only be changed while the room is pending."

    def clean_positions_text(self) -> tuple[PositionSpec, ...] | None:
        if self.fields["positions_text"].disabled:
            return None
        return parse_positions_text(self.cleaned_data.get("positions_text") or "")

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("is_access_restricted") and not str(cleaned.get("access_code") or "").strip():
            self.add_error("access_code", "Restricted rooms need an access code.")
        return cleaned


class PanelForm(StyledModelForm):
    class Meta:
        model = Panel
        fields = ["title", "description"]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 3}),
        }


class RoomStatusForm(StyledForm):
    status = forms.ChoiceField(choices=Room.Status.choices)


class TieResolutionForm(AdminPasswordForm):
    candidate_id = forms.TypedChoiceField(coerce=int, widget=forms.RadioSelect, label="Winner")

    field_order = ["candidate_id", "password"]

    def __init__(self, *args, tie: Tie, **kwargs):
        super().__init__(*args, **kwargs)
        self.tie = tie
        self.fields["candidate_id"].choices = [
            (c.id, f"{c.name} ({c.vote_count} votes)") for c in tie.candidates
        ]


class MultiWinResolutionForm(AdminPasswordForm):
    position_id = forms.TypedChoiceField(coerce=int, widget=forms.RadioSelect, label="Position to keep")

    field_order = ["position_id", "password"]

    def __init__(self, *args, multi_win: MultiWin, **kwargs):
        super().__init__(*args, **kwargs)
        self.multi_win = multi_win
        self.fields["position_id"].choices = [(ref.position_id, ref.position_title) for ref in multi_win.positions]


def _role_choices() -> list[tuple[str, object]]:
    return [
        ("", "Select your current position or role..."),
        ("Faculty", [(r, r) for r in FACULTY_ROLES]),
        ("Club Authorities", [(r, r) for r in CLUB_AUTHORITIES]),
        ("Club Operation Team", [(r, r) for r in CLUB_OPERATION_TEAM]),
        ("General Club Roles", [(r, r) for r in (*GENERAL_CLUB_ROLES, OTHER_ROLE)]),
    ]


class RoomEntryForm(StyledForm):
    email = forms.EmailField(label="Your email")
    own_position_title = forms.ChoiceField(label="Your position/role", choices=_role_choices)
    access_code = forms.CharField(required=False, label="Access code")

    def __init__(self, *args, room: Room, **kwargs):
        super().__init__(*args, **kwargs)
        if room.is_access_restricted:
            self.fields["access_code"].required = True
        else:
            self.fields.pop("access_code")

    def clean_own_position_title(self) -> str:
        value = str(self.cleaned_data.get("own_position_title") or "").strip()
        if value not in ALL_ELECTION_ROLES:
            raise forms.ValidationError("Select a valid role.")
        return value


def ballot_field_name(position_id: int) -> str:
    return f"position_{position_id}"


def participant_positions(room: Room, own_position_title: str) -> list[Position]:
    """Positions a participant sees; their own position is hidden."""
    return [
        p
        for p in room.positions.prefetch_related("candidates").all()
        if not is_own_position(p.title, own_position_title)
    ]


class BallotForm(StyledForm):
    """One optional choice per position; leaving a position blank abstains."""

    def __init__(self, *args, positions: Sequence[Position], **kwargs):
        super().__init__(*args, **kwargs)
        self.positions = list(positions)
        for position in self.positions:
            self.fields[ballot_field_name(position.id)] = forms.TypedChoiceField(
                label=position.title,
                required=False,
                coerce=int,
                empty_value=None,
                widget=forms.RadioSelect,
                choices=[("", "Abstain / Skip Position")] + [(c.id, c.name) for c in position.candidates.all()],
            )
        self._apply_css_classes()

    def selections(self) -> dict[int, int | None]:
        return {p.id: self.cleaned_data.get(ballot_field_name(p.id)) for p in self.positions}


class ReviewForm(StyledForm):
    """Star rating and written feedback per reviewed position.

    Participants whose role may skip reviews can leave a rating at 0; everyone
    else must rate and comment on every position shown.
    """

    def __init__(self, *args, positions: Sequence[Position], own_position_title: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.positions = list(positions)
        self.can_skip = can_skip_reviews(own_position_title)
        for position in self.positions:
            candidate = next(iter(position.candidates.all()), None)
            reviewed = candidate.name if candidate is not None else ""
            self.fields[f"rating_{position.id}"] = forms.TypedChoiceField(
                label=f"{position.title} - {reviewed}",
                coerce=int,
                choices=[(i, f"{i} / 5") for i in range(0, 6)],
                initial=0,
            )
            self.fields[f"feedback_{position.id}"] = forms.CharField(
                label="Feedback",
                required=False,
                widget=forms.Textarea(attrs={"rows": 3}),
            )
        self._apply_css_classes()

    def clean(self):
        cleaned = super().clean()
        if self.can_skip:
            return cleaned
        for position in self.positions:
            if not cleaned.get(f"rating_{position.id}"):
                self.add_error(f"rating_{position.id}", "Please provide a star rating before proceeding.")
            if not str(cleaned.get(f"feedback_{position.id}") or "").strip():
                self.add_error(f"feedback_{position.id}", "Please provide written feedback before proceeding.")
        return cleaned

    def selections(self) -> dict[int, ReviewSelection]:
        selections: dict[int, ReviewSelection] = {}
        for position in self.positions:
            rating = int(self.cleaned_data.get(f"rating_{position.id}") or 0)
            feedback = str(self.cleaned_data.get(f"feedback_{position.id}") or "").strip()
            # Only positions with both a rating and feedback count as reviewed.
            if rating > 0 and feedback:
                selections[position.id] = ReviewSelection(rating=rating, feedback=feedback)
        return selections


class TermRoleForm(StyledForm):
    id = forms.CharField(widget=forms.HiddenInput)
    position_title = forms.CharField(label="Position")
    holder_name = forms.CharField(label="Holder", error_messages={"required": "Winner's name is required."})
    role_type = forms.ChoiceField(choices=Term.RoleType.choices)


class BaseTermRoleFormSet(forms.BaseFormSet):
    def clean(self):
        super().clean()
        if any(self.errors):
            return
        if not [f for f in self.forms if f.cleaned_data and not f.cleaned_data.get("DELETE")]:
            raise forms.ValidationError("At least one leadership role is required.")

    def roles(self) -> list[dict[str, str]]:
        return [
            {
                "id": f.cleaned_data["id"],
                "position_title": f.cleaned_data["position_title"],
                "holder_name": f.cleaned_data["holder_name"],
                "role_type": f.cleaned_data["role_type"],
            }
            for f in self.forms
            if f.cleaned_data and not f.cleaned_data.get("DELETE")
        ]


TermRoleFormSet = forms.formset_factory(TermRoleForm, formset=BaseTermRoleFormSet, extra=0, can_delete=True)


class TermDatesForm(StyledForm):
    start_date = forms.DateField(widget=forms.DateInput(attrs={"type": "date"}))
    end_date = forms.DateField(widget=forms.DateInput(attrs={"type": "date"}))

    def clean(self):
        cleaned = super().clean()
        start: datetime.date | None = cleaned.get("start_date")
        end: datetime.date | None = cleaned.get("end_date")
        if start and end and end <= start:
            self.add_error("end_date", "The term must end after it starts.")
        return cleaned
