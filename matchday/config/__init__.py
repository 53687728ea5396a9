from .settings import EngineSettings, get_bool_env, get_float_env, get_int_env

__all__ = ["EngineSettings", "get_bool_env", "get_float_env", "get_int_env"]
