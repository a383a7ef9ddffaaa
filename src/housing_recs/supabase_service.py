from datetime import date
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from .config import CLICK_EVENT_NAME, JobConfig, SupabaseSettings, TableNames

RANKED_TAGS_FUNCTION = "top_housing_tags_by_nationality"


class SupabaseService:
    """Supabase-backed store for the nationality recommendation job"""

    def __init__(self, settings: Optional[SupabaseSettings] = None,
                 tables: Optional[TableNames] = None, client: Optional[Client] = None):
        if client is None:
            settings = (settings or JobConfig.from_env().supabase).require()
            # Use service role key for full access
            client = create_client(settings.url, settings.service_role_key)
        self.client = client
        self.tables = tables or TableNames()

    def _page(self, table: str, after: Optional[Any], limit: int, columns: str = "*", **filters) -> List[Dict[str, Any]]:
        """Keyset page ordered by id, starting strictly after ``after``"""
        query = self.client.table(table).select(columns)
        for key, value in filters.items():
            query = query.eq(key, value)
        if after is not None:
            query = query.gt("id", after)
        response = query.order("id").limit(limit).execute()
        return response.data or []

    # ==================== ANALYTICS EVENTS ====================

    def fetch_click_events_page(self, date_from: date, date_to: date,
                                after: Optional[Any], limit: int) -> List[Dict[str, Any]]:
        """Click events inside [date_from, date_to]"""
        query = (self.client.table(self.tables.events)
                 .select("id,event_name,event_date,event_params")
                 .eq("event_name", CLICK_EVENT_NAME)
                 .gte("event_date", date_from.isoformat())
                 .lte("event_date", date_to.isoformat()))
        if after is not None:
            query = query.gt("id", after)
        response = query.order("id").limit(limit).execute()
        return response.data or []

    def fetch_ranked_tags_page(self, date_from: date, date_to: date, top_n: int,
                               after: Optional[str], limit: int) -> List[Dict[str, Any]]:
        """Per-nationality top tags ranked by the top_housing_tags_by_nationality function"""
        response = self.client.rpc(RANKED_TAGS_FUNCTION, {
            "date_from": date_from.isoformat(),
            "date_to": date_to.isoformat(),
            "top_n": top_n,
            "after_nationality": after,
            "page_limit": limit,
        }).execute()
        return response.data or []

    # ==================== TAGS ====================

    def fetch_tags_page(self, after: Optional[Any], limit: int) -> List[Dict[str, Any]]:
        """Tag catalog rows (id, name)"""
        return self._page(self.tables.tags, after, limit, columns="id,name")

    # ==================== LISTINGS ====================

    def fetch_listings_page(self, after: Optional[Any], limit: int) -> List[Dict[str, Any]]:
        return self._page(self.tables.listings, after, limit)

    def fetch_listing_tags_page(self, listing_id: Any, after: Optional[Any], limit: int) -> List[Dict[str, Any]]:
        """Tags attached to one listing"""
        return self._page(self.tables.listing_tags, after, limit,
                          columns="id,tag_id,name", housing_post_id=listing_id)

    # ==================== STUDENTS & PROFILES ====================

    def fetch_students_page(self, after: Optional[Any], limit: int) -> List[Dict[str, Any]]:
        return self._page(self.tables.students, after, limit)

    def find_profile_by_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Profile owned by a student, or None"""
        response = (self.client.table(self.tables.profiles)
                    .select("id,user_id")
                    .eq("user_id", str(user_id))
                    .limit(1)
                    .execute())
        return response.data[0] if response.data else None

    # ==================== RECOMMENDATIONS ====================

    def upsert_recommendations(self, rows: List[Dict[str, Any]]) -> int:
        """Merge rows into a profile's recommendations in a single statement"""
        if not rows:
            return 0
        response = (self.client.table(self.tables.recommendations)
                    .upsert(rows, on_conflict="profile_id,housing_post_id")
                    .execute())
        return len(response.data or [])


# Singleton instance
_supabase_service = None


def get_supabase_service(config: Optional[JobConfig] = None) -> SupabaseService:
    """Get or create the singleton SupabaseService instance"""
    global _supabase_service
    if _supabase_service is None:
        config = config or JobConfig.from_env()
        _supabase_service = SupabaseService(config.supabase, config.tables)
    return _supabase_service
