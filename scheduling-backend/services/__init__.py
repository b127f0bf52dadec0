"""Service layer for the scheduling backend."""

from .supabase_client import SupabaseClient  # noqa: F401
from .slot_generator import SlotGenerator  # noqa: F401
from .zoom_client import ZoomClient, ZoomMeeting  # noqa: F401
