from __future__ import annotations

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q


class Panel(models.Model):
    """A named grouping of rooms (one election season, one review cycle)."""

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "id")

    def __str__(self) -> str:
        return self.title


class RoomQuerySet(models.QuerySet):
    def voting(self) -> RoomQuerySet:
        return self.filter(room_type="voting")

    def review(self) -> RoomQuerySet:
        return self.filter(room_type="review")

    def archived(self) -> RoomQuerySet:
        return self.filter(finalized=True)


class Room(models.Model):
    class Status(models.TextChoices):
        pending = "pending", "Pending"
        active = "active", "Active"
        closed = "closed", "Closed"

    class RoomType(models.TextChoices):
        voting = "voting", "Voting"
        review = "review", "Review"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.pending)
    room_type = models.CharField(max_length=16, choices=RoomType.choices, default=RoomType.voting)
    panel = models.ForeignKey(Panel, on_delete=models.SET_NULL, blank=True, null=True, related_name="rooms")

    is_access_restricted = models.BooleanField(default=False)
    access_code = models.CharField(max_length=64, blank=True, default="")

    # Frozen summary written by the finalizer; working records are gone afterwards.
    finalized = models.BooleanField(default=False)
    finalized_results = models.JSONField(blank=True, default=dict)
    finalized_at = models.DateTimeField(blank=True, null=True)

    pinned_to_term = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RoomQuerySet.as_manager()

    class Meta:
        ordering = ("-created_at", "id")
        permissions = [
            ("manage_rooms", "Can create, resolve and finalize rooms"),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def is_review(self) -> bool:
        return self.room_type == self.RoomType.review


class Position(models.Model):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="positions")
    title = models.CharField(max_length=255)
    sort_order = models.PositiveIntegerField(default=0)

    # Names of people whose win here was voided in favor of another position.
    forfeited_by_candidate_names = models.JSONField(blank=True, default=list)

    class Meta:
        ordering = ("sort_order", "id")

    def __str__(self) -> str:
        return f"{self.title} ({self.room_id})"

    @property
    def forfeited_by_candidate_name(self) -> str:
        names = self.forfeited_by_candidate_names or []
        return str(names[-1]) if names else ""


class Candidate(models.Model):
    position = models.ForeignKey(Position, on_delete=models.CASCADE, related_name="candidates")
    name = models.CharField(max_length=255)
    image_url = models.URLField(blank=True, default="", max_length=2048)
    sort_order = models.PositiveIntegerField(default=0)
    is_official_winner = models.BooleanField(default=False)

    class Meta:
        ordering = ("sort_order", "id")
        constraints = [
            models.UniqueConstraint(
                fields=["position"],
                name="uniq_candidate_official_winner_per_position",
                condition=Q(is_official_winner=True),
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.position_id})"


class Voter(models.Model):
    class Status(models.TextChoices):
        in_room = "in_room", "In room"
        completed = "completed", "Completed"

    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="voters")
    email = models.EmailField(max_length=254)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.in_room)
    own_position_title = models.CharField(max_length=255, blank=True, default="")
    last_activity = models.DateTimeField(blank=True, null=True)
    voted_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ("-last_activity", "id")
        constraints = [
            models.UniqueConstraint(fields=["room", "email"], name="uniq_voter_room_email"),
        ]

    def __str__(self) -> str:
        return f"{self.email} ({self.room_id})"


class Vote(models.Model):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="votes")
    position = models.ForeignKey(Position, on_delete=models.CASCADE, related_name="votes")
    candidate = models.ForeignKey(Candidate, on_delete=models.CASCADE, related_name="votes")
    voter_email = models.EmailField(max_length=254)
    voted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["position", "voter_email"],
                name="uniq_vote_position_voter",
            ),
        ]
        indexes = [
            models.Index(fields=["room", "candidate"], name="vote_room_cand"),
        ]

    def __str__(self) -> str:
        return f"vote:{self.room_id}:{self.position_id}:{self.candidate_id}"


class Review(models.Model):
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="reviews")
    position = models.ForeignKey(Position, on_delete=models.CASCADE, related_name="reviews")
    candidate = models.ForeignKey(Candidate, on_delete=models.CASCADE, related_name="reviews")
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    feedback = models.TextField(blank=True, default="")
    reviewer_email = models.EmailField(max_length=254)
    reviewed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-reviewed_at", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=["position", "reviewer_email"],
                name="uniq_review_position_reviewer",
            ),
        ]

    def __str__(self) -> str:
        return f"review:{self.room_id}:{self.position_id}:{self.rating}"


class Term(models.Model):
    """A published leadership roster; the newest one is shown on the homepage."""

    class RoleType(models.TextChoices):
        authority = "Authority", "Authority"
        lead = "Lead", "Lead"

    start_date = models.DateField()
    end_date = models.DateField()
    # List of {"id", "position_title", "holder_name", "role_type"}.
    roles = models.JSONField(blank=True, default=list)
    source_room = models.ForeignKey(Room, on_delete=models.SET_NULL, blank=True, null=True, related_name="terms")
    source_room_title = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self) -> str:
        return f"{self.start_date:%Y-%m-%d} - {self.end_date:%Y-%m-%d}"


class AuditLogEntry(models.Model):
    room = models.ForeignKey(Room, on_delete=models.SET_NULL, blank=True, null=True, related_name="audit_log")
    timestamp = models.DateTimeField(auto_now_add=True)
    event_type = models.CharField(max_length=64)
    actor = models.CharField(max_length=150, blank=True, default="")
    payload = models.JSONField(blank=True, default=dict)

    class Meta:
        verbose_name_plural = "Audit log entries"
        ordering = ("timestamp", "id")
        indexes = [
            models.Index(fields=["room", "timestamp"], name="audit_room_ts"),
        ]

    def __str__(self) -> str:
        return f"{self.room_id}:{self.event_type}"
