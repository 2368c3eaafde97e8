from elearning.db.database import Base, get_async_session, init_models, session_scope

__all__ = ["Base", "get_async_session", "init_models", "session_scope"]
