from cardswap.db.database import get_session, init_db
from cardswap.db.operations import (
    card_to_model,
    count_collection_entries,
    count_comments_since,
    count_custom_lines,
    count_matches_by_status,
    count_unread_notifications,
    count_wishlist_entries,
    create_collection_entry,
    create_comment,
    create_wishlist_entry,
    delete_collection_entry,
    delete_match_lines,
    delete_matches,
    delete_wishlist_entry,
    get_active_location,
    get_card,
    get_collection_entries,
    get_collection_entry,
    get_comment,
    get_comments,
    get_escrowed_collection_ids,
    get_lines_for_matches,
    get_match,
    get_match_by_pair,
    get_match_line,
    get_match_lines,
    get_matches_for_user,
    get_notifications,
    get_other_active_locations,
    get_preferences,
    get_preferences_map,
    get_wishlist_entries,
    get_wishlist_entry,
    mark_notifications_read,
    search_collection,
    set_active_location,
    upsert_card,
    upsert_preferences,
)

__all__ = [
    "card_to_model",
    "count_collection_entries",
    "count_comments_since",
    "count_custom_lines",
    "count_matches_by_status",
    "count_unread_notifications",
    "count_wishlist_entries",
    "create_collection_entry",
    "create_comment",
    "create_wishlist_entry",
    "delete_collection_entry",
    "delete_match_lines",
    "delete_matches",
    "delete_wishlist_entry",
    "get_active_location",
    "get_card",
    "get_collection_entries",
    "get_collection_entry",
    "get_comment",
    "get_comments",
    "get_escrowed_collection_ids",
    "get_lines_for_matches",
    "get_match",
    "get_match_by_pair",
    "get_match_line",
    "get_match_lines",
    "get_matches_for_user",
    "get_notifications",
    "get_other_active_locations",
    "get_preferences",
    "get_preferences_map",
    "get_session",
    "get_wishlist_entries",
    "get_wishlist_entry",
    "init_db",
    "mark_notifications_read",
    "search_collection",
    "set_active_location",
    "upsert_card",
    "upsert_preferences",
]
