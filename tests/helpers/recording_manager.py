"""In-memory stand-in for a database's view-management API."""

from typing import Dict, List, Optional


class RecordingViewManager:
    """View manager that remembers calls and can fail on chosen views."""

    def __init__(self, fail_on: Optional[Dict[str, Exception]] = None):
        self.created: List[tuple] = []
        self.fail_on = fail_on or {}

    def create_or_replace_view(self, dataset_id: str, view_name: str, sql: str) -> None:
        if view_name in self.fail_on:
            raise self.fail_on[view_name]
        self.created.append((dataset_id, view_name, sql))

    @property
    def view_names(self) -> List[str]:
        return [name for _, name, _ in self.created]
