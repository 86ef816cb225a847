from app.tasks.acs import sync_all_active_configs

__all__ = ["sync_all_active_configs"]
