"""Bundle record admin."""

from django.contrib import admin

from bundleman.models import BundleComponent, BundleRecord


class BundleComponentInline(admin.TabularInline):
    model = BundleComponent
    fk_name = "record"
    extra = 0
    ordering = ["position"]
    fields = ["position", "component_id", "qty"]


@admin.register(BundleRecord)
class BundleRecordAdmin(admin.ModelAdmin):
    list_display = [
        "product_id",
        "title",
        "component_count",
        "updated_at",
    ]
    search_fields = ["title", "=product_id", "=components__component_id"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [BundleComponentInline]

    def component_count(self, obj):
        return obj.components.count()

    component_count.short_description = "Components"

    actions = ["reconcile_bundles", "queue_bundles"]

    @admin.action(description="Reconcile selected bundles now")
    def reconcile_bundles(self, request, queryset):
        from bundleman.reconciler import Status
        from bundleman.service import BundleService

        results = [BundleService.reconcile(record.product_id) for record in queryset]
        changed = sum(1 for r in results if r.changed)
        failed = sum(1 for r in results if r.status == Status.FAILED)
        self.message_user(request, f"{len(results)} bundle(s) reconciled, {changed} changed, {failed} failed.")

    @admin.action(description="Queue selected bundles for reconciliation")
    def queue_bundles(self, request, queryset):
        from bundleman.service import BundleService

        queued = sum(1 for record in queryset if BundleService.on_product_changed(record.product_id))
        self.message_user(request, f"{queued} bundle(s) queued.")
