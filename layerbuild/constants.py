"""Paths, names and defaults shared across the build tool."""

DEFAULT_LOG_LEVEL = "info"

ROOT_DIR = "/"
WORKSPACE_DIR = "/workspace"
KANIKO_DIR = "/kaniko"
WHITELIST_PATH = "/proc/self/mountinfo"
AUTHOR = "kaniko"

# Where the Dockerfile is copied before the build starts.
DOCKERFILE_PATH = "/kaniko/Dockerfile"

# Default name of the tarball uploaded to storage buckets.
CONTEXT_TAR = "context.tar.gz"

# Directory a downloaded build context is unpacked into.
BUILD_CONTEXT_DIR = "/kaniko/buildcontext/"

# Where intermediate stages are stored as tarballs.
KANIKO_INTERMEDIATE_STAGES_DIR = "/kaniko/stages"

SNAPSHOT_MODE_TIME = "time"
SNAPSHOT_MODE_FULL = "full"

# The scratch image.
NO_BASE_IMAGE = "scratch"

GCS_BUILD_CONTEXT_PREFIX = "gs://"
S3_BUILD_CONTEXT_PREFIX = "s3://"
LOCAL_DIR_BUILD_CONTEXT_PREFIX = "dir://"

HOME = "HOME"
# Default value Docker sets for $HOME.
DEFAULT_HOME_VALUE = "/root"
ROOT_USER = "root"

CMD = "cmd"
ENTRYPOINT = "entrypoint"

DOCKERIGNORE = ".dockerignore"

# Files required to run the builder itself.
KANIKO_BUILD_FILES = (
    "/kaniko/executor",
    "/kaniko/ssl/certs/ca-certificates.crt",
    "/kaniko/docker-credential-gcr",
    "/kaniko/docker-credential-ecr-login",
    "/kaniko/.docker/config.json",
)

# Default environment variables for a scratch image.
SCRATCH_ENV_VARS = ("PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin",)