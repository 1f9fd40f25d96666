"""Names of git files, refs, config settings and environment variables."""

DOT_GIT_ROOT = ".git"
OBJECTS_PACK_DIR = "pack"

REFS_HEADS = "refs/heads"
# Background fetches store remote refs here so they never show up for the user.
REFS_HIDDEN = "refs/scalar/hidden"


class GitConfig:
    USE_GVFS_HELPER = "core.useGvfsHelper"
    CREDENTIAL_USE_HTTP_PATH = "credential.useHttpPath"
    MULTI_PACK_INDEX = "core.multiPackIndex"
    REMOTE_ORIGIN_URL = "remote.origin.url"


class GitEnv:
    TRACE_PREFIX = "GIT_TRACE"
    TERMINAL_PROMPT = "GIT_TERMINAL_PROMPT"
    OBJECT_DIRECTORY = "GIT_OBJECT_DIRECTORY"
    GCM_VALIDATE = "GCM_VALIDATE"
    GCM_INTERACTIVE = "GCM_INTERACTIVE"
