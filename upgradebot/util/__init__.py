from .cancel import CancelToken, CanceledError, check
from .env import env_bool, env_int, load_env_file
from .exec import CmdResult, CommandError, ExecOptions, run_command
from .id import new_run_id, new_workdir_name
from .json import error_response, json_response
from .lookpath import look_path, look_paths
from .path import expand_home, expand_url_home

__all__ = [
    "CancelToken",
    "CanceledError",
    "check",
    "env_bool",
    "env_int",
    "load_env_file",
    "CmdResult",
    "CommandError",
    "ExecOptions",
    "run_command",
    "new_run_id",
    "new_workdir_name",
    "error_response",
    "json_response",
    "look_path",
    "look_paths",
    "expand_home",
    "expand_url_home",
]
