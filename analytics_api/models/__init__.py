from analytics_api.models.kv_entry import KvEntry  # noqa: F401
