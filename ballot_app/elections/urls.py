from django.urls import path

from elections import views_offline, views_results

urlpatterns = [
    path("offline/validate-vid/", views_offline.offline_validate_vid, name="offline-validate-vid"),
    path("offline/submit/", views_offline.offline_submit, name="offline-submit"),
    path("offline/entries/", views_offline.offline_entries, name="offline-entries"),
    path("offline/merge/", views_offline.offline_merge, name="offline-merge"),
    path("public/winners/", views_results.public_winners_list, name="public-winners"),
    path("<int:election_id>/results/", views_results.election_results, name="election-results"),
    path("<int:election_id>/winners/", views_results.election_winners, name="election-winners"),
    path(
        "<int:election_id>/export/<slug:kind>.<str:file_format>",
        views_results.election_export,
        name="election-export",
    ),
]
