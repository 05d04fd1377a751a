from django.contrib import admin

from core.models import AuditLogEntry, Candidate, Panel, Position, Room, Term


class PositionInline(admin.TabularInline):
    model = Position
    extra = 0
    fields = ("title", "sort_order", "forfeited_by_candidate_names")
    readonly_fields = ("forfeited_by_candidate_names",)
    show_change_link = True


class CandidateInline(admin.TabularInline):
    model = Candidate
    extra = 0
    fields = ("name", "image_url", "sort_order", "is_official_winner")
    readonly_fields = ("is_official_winner",)


@admin.register(Panel)
class PanelAdmin(admin.ModelAdmin):
    list_display = ("title", "created_at")
    search_fields = ("title",)


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("title", "room_type", "status", "panel", "finalized", "pinned_to_term", "created_at")
    list_filter = ("room_type", "status", "finalized")
    search_fields = ("title",)
    inlines = [PositionInline]
    # Results and lifecycle go through the services so they stay audited.
    readonly_fields = ("status", "finalized", "finalized_results", "finalized_at", "pinned_to_term")


@admin.register(Position)
class PositionAdmin(admin.ModelAdmin):
    list_display = ("title", "room", "sort_order")
    inlines = [CandidateInline]
    readonly_fields = ("forfeited_by_candidate_names",)


@admin.register(Term)
class TermAdmin(admin.ModelAdmin):
    list_display = ("start_date", "end_date", "source_room_title", "created_at")


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    list_display = ("timestamp", "event_type", "room", "actor")
    list_filter = ("event_type",)
    search_fields = ("actor", "event_type")
    readonly_fields = ("room", "timestamp", "event_type", "actor", "payload")

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False
