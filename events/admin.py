from django.contrib import admin
from .models import (
    Event,
    EventRegistration,
    EventTerms,
    Team,
    TeamMember,
    TermsQuestion,
    TermsQuestionOption,
    TermsResponse,
)

@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ('title', 'status', 'event_date', 'max_volunteers', 'created_by')
    list_filter = ('status', 'event_date')
    search_fields = ('title', 'description', 'created_by__username')
    date_hierarchy = 'event_date'

@admin.register(EventRegistration)
class EventRegistrationAdmin(admin.ModelAdmin):
    list_display = ('user', 'event', 'status', 'terms_accepted', 'created_at')
    list_filter = ('status', 'terms_accepted')
    search_fields = ('user__username', 'event__title')

class TeamMemberInline(admin.TabularInline):
    model = TeamMember
    extra = 0
    fields = ('user', 'role_in_team', 'status', 'joined_at', 'left_at')

@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ('name', 'event', 'captain', 'status', 'max_volunteers')
    list_filter = ('status',)
    search_fields = ('name', 'event__title', 'captain__username')
    inlines = [TeamMemberInline]

@admin.register(TeamMember)
class TeamMemberAdmin(admin.ModelAdmin):
    list_display = ('user', 'team', 'role_in_team', 'status', 'joined_at', 'left_at')
    list_filter = ('role_in_team', 'status')
    search_fields = ('user__username', 'team__name')

@admin.register(EventTerms)
class EventTermsAdmin(admin.ModelAdmin):
    list_display = ('event', 'is_required', 'is_active', 'updated_at')
    list_filter = ('is_required', 'is_active')
    search_fields = ('event__title',)

class TermsQuestionOptionInline(admin.TabularInline):
    model = TermsQuestionOption
    extra = 0
    fields = ('text', 'value', 'order', 'is_active')

@admin.register(TermsQuestion)
class TermsQuestionAdmin(admin.ModelAdmin):
    list_display = ('text', 'event', 'question_type', 'is_required', 'order', 'is_active')
    list_filter = ('question_type', 'is_required', 'is_active')
    search_fields = ('text', 'event__title')
    inlines = [TermsQuestionOptionInline]

@admin.register(TermsResponse)
class TermsResponseAdmin(admin.ModelAdmin):
    list_display = ('user', 'event', 'question', 'responded_at')
    search_fields = ('user__username', 'event__title')
